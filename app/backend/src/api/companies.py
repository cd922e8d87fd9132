"""Partner company endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.backend.src.db import get_session_dependency
from app.backend.src.models import Company
from app.backend.src.schemas.company import CompanyCreate, CompanyRead
from app.backend.src.services import companies as company_service

router = APIRouter(prefix="/companies", tags=["companies"])

SessionDep = Annotated[Session, Depends(get_session_dependency)]


@router.get("", response_model=list[CompanyRead])
def list_companies(session: SessionDep) -> list[Company]:
    return company_service.list_companies(session)


@router.get("/{company_id}", response_model=CompanyRead)
def get_company(company_id: int, session: SessionDep) -> Company:
    return company_service.get_company(session, company_id)


@router.post("", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
def create_company(payload: CompanyCreate, session: SessionDep) -> Company:
    return company_service.create_company(session, payload.model_dump())
