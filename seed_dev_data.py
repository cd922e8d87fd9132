"""Seed the development database with a demo partner company and jobs."""

from app.backend.src.db import create_schema, session_scope
from app.backend.src.services.seed import seed_development_data


def main() -> None:
    """Create tables (if needed) and ensure demo data exists."""

    create_schema()

    with session_scope() as session:
        result = seed_development_data(session)
        session.flush()

        print("✅ Development data ready!")
        company_status = "created" if result.company_created else "unchanged"
        print(
            f"Company ({company_status}): {result.company.company_name} [id={result.company.id}]"
        )
        print(f"Jobs added this run: {result.jobs_created}")
        print()
        print("POST /api/invoices/generate with the current monthYear to bill them.")


if __name__ == "__main__":
    main()
