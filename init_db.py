from app.backend.src.core.config import get_settings
from app.backend.src.db import create_schema
from app.backend.src.models import *  # noqa
from app.backend.src.models.base import Base


def init_db():
    print(f"🚀 Connecting to {get_settings().database_url}")
    create_schema()
    print(f"✅ Tables ready: {', '.join(sorted(Base.metadata.tables))}")
    print("Run the uniqueness migration once on databases created before it existed.")


if __name__ == "__main__":
    init_db()
