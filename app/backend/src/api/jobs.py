"""Job ledger endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.backend.src.db import get_session_dependency
from app.backend.src.models import Job
from app.backend.src.schemas.job import JobCreate, JobRead, JobUpdate
from app.backend.src.services import job_ledger

router = APIRouter(prefix="/jobs", tags=["jobs"])

SessionDep = Annotated[Session, Depends(get_session_dependency)]


@router.get("", response_model=list[JobRead])
def list_jobs(session: SessionDep) -> list[Job]:
    return job_ledger.list_jobs(session)


@router.get("/{job_id}", response_model=JobRead)
def get_job(job_id: int, session: SessionDep) -> Job:
    return job_ledger.get_job(session, job_id)


@router.post("", response_model=JobRead, status_code=status.HTTP_201_CREATED)
def create_job(payload: JobCreate, session: SessionDep) -> Job:
    """Record a job; the job number is assigned sequentially."""

    return job_ledger.create_job(session, payload.model_dump())


@router.patch("/{job_id}", response_model=JobRead)
def update_job(job_id: int, payload: JobUpdate, session: SessionDep) -> Job:
    """Correct a job's status, fee or description."""

    return job_ledger.update_job(session, job_id, payload.model_dump(exclude_unset=True))
