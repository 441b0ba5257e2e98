"""
api/routes/v1/applications.py -- Job application endpoints.

Routes:
  POST   /api/v1/applications                         -- apply to a job (candidate)
  GET    /api/v1/applications                         -- role-scoped listing (any signed-in role but guest)
  GET    /api/v1/applications/job/{job_id}            -- owning employer or admin
  GET    /api/v1/applications/user/{user_id}          -- that candidate or admin
  GET    /api/v1/applications/employer/{employer_id}  -- that employer or admin
  GET    /api/v1/applications/{application_id}        -- candidate, owning employer or admin
  PUT    /api/v1/applications/{application_id}/status -- owning employer or admin
  DELETE /api/v1/applications/{application_id}        -- candidate (withdraw) or admin

Counter maintenance:
  A successful POST increments the job's application_count; a DELETE
  decrements it (never below zero). Each is one atomic UPDATE issued after the
  application write. The two writes are not wrapped in a transaction, so a
  crash between them leaves the counter off by one. That drift is accepted.

Identity: user ids and employer ids come from different tables and can be
equal, so every ownership check compares the principal's role as well as its id.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.errors import api_error, bad_request, forbidden, not_found
from api.models import (
    ApplicationCreate,
    ApplicationOut,
    ApplicationStatusEnum,
    ApplicationStatusUpdate,
    Envelope,
)
from auth.dependencies import get_current_principal, require_roles
from auth.models import ROLE_ADMIN, ROLE_CANDIDATE, ROLE_EMPLOYER, Principal
from auth.store import PrincipalStore
from board.models import Application, Job
from board.store import BoardStore

logger = logging.getLogger("jobboard.api.applications")

# Auth policy:
# - POST   /applications:               candidate
# - GET    /applications and /{id}:     candidate, employer or admin (scoped per role)
# - PUT    /applications/{id}/status:   owning employer or admin
# - DELETE /applications/{id}:          owning candidate or admin
router = APIRouter()

_candidate = require_roles(ROLE_CANDIDATE)
_reader = require_roles(ROLE_CANDIDATE, ROLE_EMPLOYER, ROLE_ADMIN)
_reviewer = require_roles(ROLE_EMPLOYER, ROLE_ADMIN)
_withdrawer = require_roles(ROLE_CANDIDATE, ROLE_ADMIN)


def _is_candidate(principal: Principal, application: Application) -> bool:
    return principal.role == ROLE_CANDIDATE and principal.id == application.candidate_id


def _is_employer(principal: Principal, employer_id: int) -> bool:
    return principal.role == ROLE_EMPLOYER and principal.id == employer_id


def _deadline_passed(job: Job) -> bool:
    deadline = datetime.fromisoformat(job.deadline)
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    return deadline < datetime.now(timezone.utc)


def _get_application(request: Request, application_id: int) -> Application:
    board: BoardStore = request.app.state.board_store
    application = board.get_application(application_id)
    if application is None:
        raise not_found("Application")
    return application


def _out(applications: list[Application]) -> Envelope[list[ApplicationOut]]:
    return Envelope(data=[ApplicationOut.from_domain(a) for a in applications], count=len(applications))


@router.post("/applications", response_model=Envelope[ApplicationOut], status_code=201)
def create_application(
    request: Request,
    body: ApplicationCreate,
    principal: Principal = Depends(_candidate),
) -> Envelope[ApplicationOut]:
    """Apply to an active job before its deadline, once per candidate.

    name, email and resume default to the candidate's profile. The
    (job_id, candidate_id) UNIQUE constraint backs the duplicate pre-check, so
    two concurrent submissions still yield one row and one 400.
    """
    principals: PrincipalStore = request.app.state.principal_store
    board: BoardStore = request.app.state.board_store

    job = board.get_job(body.job_id)
    if job is None or not job.is_active:
        raise api_error(404, "job_unavailable", "Job not found or no longer accepting applications.")
    if _deadline_passed(job):
        raise bad_request("deadline_passed", "The application deadline for this job has passed.")
    if board.find_application(job.id, principal.id) is not None:
        raise bad_request("duplicate_application", "You have already applied for this job.")

    candidate = principals.get_user(principal.id)
    if candidate is None:
        raise not_found("Candidate")
    resume = body.resume or candidate.resume
    if not resume:
        raise bad_request("validation_error", "A resume is required. Upload one or pass its URL.")

    try:
        application_id = board.create_application(
            Application(
                job_id=job.id,
                candidate_id=principal.id,
                employer_id=job.employer_id,
                name=body.name or candidate.name,
                email=body.email or candidate.email,
                resume=resume,
                cover_letter=body.cover_letter,
            )
        )
    except IntegrityError as exc:
        raise bad_request("duplicate_application", "You have already applied for this job.") from exc

    board.increment_application_count(job.id)
    logger.info("Application submitted: id=%d job_id=%d candidate_id=%d", application_id, job.id, principal.id)
    return Envelope(
        message="Application submitted successfully.",
        data=ApplicationOut.from_domain(board.get_application(application_id)),
    )


@router.get("/applications", response_model=Envelope[list[ApplicationOut]])
def list_applications(
    request: Request,
    status: Optional[ApplicationStatusEnum] = None,
    job_id: Optional[int] = None,
    principal: Principal = Depends(_reader),
) -> Envelope[list[ApplicationOut]]:
    """Admins see every application; employers their own jobs'; candidates their own."""
    board: BoardStore = request.app.state.board_store
    scope: dict = {}
    if principal.role == ROLE_EMPLOYER:
        scope["employer_id"] = principal.id
    elif principal.role == ROLE_CANDIDATE:
        scope["candidate_id"] = principal.id
    applications = board.list_applications(
        job_id=job_id,
        status=status.value if status else None,
        **scope,
    )
    return _out(applications)


@router.get("/applications/job/{job_id}", response_model=Envelope[list[ApplicationOut]])
def applications_for_job(
    request: Request,
    job_id: int,
    principal: Principal = Depends(_reviewer),
) -> Envelope[list[ApplicationOut]]:
    board: BoardStore = request.app.state.board_store
    job = board.get_job(job_id)
    if job is None:
        raise not_found("Job")
    if not (principal.is_admin or _is_employer(principal, job.employer_id)):
        raise forbidden("You can only view applications for your own jobs.")
    return _out(board.list_applications(job_id=job_id))


@router.get("/applications/user/{user_id}", response_model=Envelope[list[ApplicationOut]])
def applications_for_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(_reader),
) -> Envelope[list[ApplicationOut]]:
    if not (principal.is_admin or (principal.role == ROLE_CANDIDATE and principal.id == user_id)):
        raise forbidden("You can only view your own applications.")
    board: BoardStore = request.app.state.board_store
    return _out(board.list_applications(candidate_id=user_id))


@router.get("/applications/employer/{employer_id}", response_model=Envelope[list[ApplicationOut]])
def applications_for_employer(
    request: Request,
    employer_id: int,
    principal: Principal = Depends(_reviewer),
) -> Envelope[list[ApplicationOut]]:
    if not (principal.is_admin or _is_employer(principal, employer_id)):
        raise forbidden("You can only view applications for your own jobs.")
    board: BoardStore = request.app.state.board_store
    return _out(board.list_applications(employer_id=employer_id))


@router.get("/applications/{application_id}", response_model=Envelope[ApplicationOut])
def get_application(
    request: Request,
    application_id: int,
    principal: Principal = Depends(get_current_principal),
) -> Envelope[ApplicationOut]:
    application = _get_application(request, application_id)
    if not (
        principal.is_admin
        or _is_candidate(principal, application)
        or _is_employer(principal, application.employer_id)
    ):
        raise forbidden()
    return Envelope(data=ApplicationOut.from_domain(application))


@router.put("/applications/{application_id}/status", response_model=Envelope[ApplicationOut])
def update_application_status(
    request: Request,
    application_id: int,
    body: ApplicationStatusUpdate,
    principal: Principal = Depends(_reviewer),
) -> Envelope[ApplicationOut]:
    board: BoardStore = request.app.state.board_store
    application = _get_application(request, application_id)
    if not (principal.is_admin or _is_employer(principal, application.employer_id)):
        raise forbidden("You can only review applications for your own jobs.")

    board.update_application_status(application_id, body.status.value, body.notes)
    logger.info(
        "Application %d status -> %s by %s id=%d", application_id, body.status.value, principal.kind, principal.id
    )
    return Envelope(
        message="Application status updated.",
        data=ApplicationOut.from_domain(board.get_application(application_id)),
    )


@router.delete("/applications/{application_id}", response_model=Envelope[None])
def delete_application(
    request: Request,
    application_id: int,
    principal: Principal = Depends(_withdrawer),
) -> Envelope[None]:
    """Withdraw (candidate) or remove (admin) an application and decrement the job's counter."""
    board: BoardStore = request.app.state.board_store
    application = _get_application(request, application_id)
    if not (principal.is_admin or _is_candidate(principal, application)):
        raise forbidden("You can only withdraw your own applications.")

    removed = board.delete_application(application_id)
    if removed is None:
        raise not_found("Application")
    board.decrement_application_count(removed.job_id)
    logger.info("Application %d deleted by %s id=%d", application_id, principal.kind, principal.id)
    return Envelope(message="Application deleted successfully.")
