"""
api/routes/v1/jobs.py -- Job posting endpoints.

Routes:
  GET    /api/v1/jobs                         -- active jobs, filtered + paginated (public)
  POST   /api/v1/jobs                         -- create (employer or admin; employer must be verified)
  GET    /api/v1/jobs/employer/{employer_id}  -- every job of one employer (public)
  GET    /api/v1/jobs/{job_id}                -- one job; atomically counts a view (public)
  PUT    /api/v1/jobs/{job_id}                -- partial update (owning employer or admin)
  DELETE /api/v1/jobs/{job_id}                -- soft delete, or ?hard=true (owning employer or admin)

Ownership: an employer may only modify jobs whose employer_id is its own id.
Admins may modify any job. Both checks read the live principal from the store.
"""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.errors import api_error, bad_request, forbidden, not_found
from api.models import (
    Envelope,
    JobCategoryEnum,
    JobCreate,
    JobOut,
    JobSortEnum,
    JobTypeEnum,
    JobUpdate,
    PaginationMeta,
    SortOrderEnum,
)
from auth.dependencies import require_roles, try_get_current_principal
from auth.models import ROLE_ADMIN, ROLE_EMPLOYER, Principal
from auth.store import PrincipalStore
from board.models import Job
from board.store import BoardStore, JobFilter

logger = logging.getLogger("jobboard.api.jobs")

# Auth policy:
# - GET  /jobs, /jobs/employer/{id}, /jobs/{id}:  public
# - POST /jobs:                                   employer or admin
# - PUT / DELETE /jobs/{id}:                      owning employer or admin
router = APIRouter()

_poster = require_roles(ROLE_EMPLOYER, ROLE_ADMIN)

_NULLABLE_JOB_FIELDS = ("salary", "experience", "education", "image")


def _can_manage(principal: Optional[Principal], job: Job) -> bool:
    if principal is None:
        return False
    if principal.role == ROLE_ADMIN:
        return True
    return principal.role == ROLE_EMPLOYER and principal.id == job.employer_id


def _get_owned_job(request: Request, job_id: int, principal: Principal) -> Job:
    board: BoardStore = request.app.state.board_store
    job = board.get_job(job_id)
    if job is None:
        raise not_found("Job")
    if not _can_manage(principal, job):
        raise forbidden("You can only manage your own job postings.")
    return job


@router.get("/jobs", response_model=Envelope[list[JobOut]])
def list_jobs(
    request: Request,
    keyword: Optional[str] = Query(default=None, max_length=100),
    category: Optional[JobCategoryEnum] = None,
    job_type: Optional[JobTypeEnum] = None,
    location: Optional[str] = Query(default=None, max_length=100),
    employer_id: Optional[int] = None,
    featured: Optional[bool] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: JobSortEnum = JobSortEnum.created_at,
    sort_order: SortOrderEnum = SortOrderEnum.desc,
) -> Envelope[list[JobOut]]:
    """List active jobs. Filters are AND-combined; keyword matches title or description."""
    board: BoardStore = request.app.state.board_store
    result = board.list_jobs(
        JobFilter(
            keyword=keyword,
            category=category.value if category else None,
            job_type=job_type.value if job_type else None,
            location=location,
            employer_id=employer_id,
            featured=featured,
        ),
        page=page,
        limit=limit,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )
    return Envelope(
        data=[JobOut.from_domain(j) for j in result.items],
        count=len(result.items),
        pagination=PaginationMeta.from_page(result),
    )


@router.post("/jobs", response_model=Envelope[JobOut], status_code=201)
def create_job(
    request: Request,
    body: JobCreate,
    principal: Principal = Depends(_poster),
) -> Envelope[JobOut]:
    """Create a job posting.

    An employer always posts for itself; an admin names the employer with
    employer_id. Either way the employer must exist and be verified.
    """
    principals: PrincipalStore = request.app.state.principal_store
    board: BoardStore = request.app.state.board_store

    if principal.role == ROLE_EMPLOYER:
        employer_id = principal.id
    elif body.employer_id is None:
        raise bad_request("validation_error", "employer_id is required when an admin creates a job.")
    else:
        employer_id = body.employer_id

    employer = principals.get_employer(employer_id)
    if employer is None:
        raise not_found("Employer")
    if not employer.is_verified:
        raise api_error(
            403,
            "employer_not_verified",
            "Your employer account must be verified by an admin before you can post jobs.",
        )

    job_id = board.create_job(
        Job(
            title=body.title,
            description=body.description,
            company=body.company or employer.company_name,
            requirements=body.requirements,
            responsibilities=body.responsibilities,
            category=body.category.value,
            job_type=body.job_type.value,
            location=body.location,
            salary=body.salary,
            experience=body.experience,
            education=body.education,
            tags=body.tags,
            image=body.image,
            deadline=body.deadline.astimezone(timezone.utc).isoformat(),
            employer_id=employer_id,
            featured=body.featured,
        )
    )
    logger.info("Job created: id=%d employer_id=%d by %s id=%d", job_id, employer_id, principal.kind, principal.id)
    return Envelope(message="Job created successfully.", data=JobOut.from_domain(board.get_job(job_id)))


@router.get("/jobs/employer/{employer_id}", response_model=Envelope[list[JobOut]])
def jobs_by_employer(request: Request, employer_id: int) -> Envelope[list[JobOut]]:
    """Every job of one employer, active or not, newest first."""
    board: BoardStore = request.app.state.board_store
    jobs = board.list_jobs_by_employer(employer_id)
    return Envelope(data=[JobOut.from_domain(j) for j in jobs], count=len(jobs))


@router.get("/jobs/{job_id}", response_model=Envelope[JobOut])
def get_job(request: Request, job_id: int) -> Envelope[JobOut]:
    """Return one job and count the view.

    The increment is a single UPDATE ... SET views = views + 1, so concurrent
    readers never lose a view. Inactive jobs are visible only to their owner
    and admins, and those views are not counted.
    """
    board: BoardStore = request.app.state.board_store
    job = board.get_job(job_id)
    if job is None:
        raise not_found("Job")
    if not job.is_active:
        if not _can_manage(try_get_current_principal(request), job):
            raise not_found("Job")
        return Envelope(data=JobOut.from_domain(job))

    board.increment_views(job_id)
    job = board.get_job(job_id)
    if job is None:
        raise not_found("Job")
    return Envelope(data=JobOut.from_domain(job))


@router.put("/jobs/{job_id}", response_model=Envelope[JobOut])
def update_job(
    request: Request,
    job_id: int,
    body: JobUpdate,
    principal: Principal = Depends(_poster),
) -> Envelope[JobOut]:
    board: BoardStore = request.app.state.board_store
    _get_owned_job(request, job_id, principal)

    fields = body.model_dump(exclude_unset=True)
    for key in ("category", "job_type"):
        if fields.get(key) is not None:
            fields[key] = fields[key].value
    if fields.get("deadline") is not None:
        fields["deadline"] = fields["deadline"].astimezone(timezone.utc).isoformat()
    # Explicit nulls on required columns are ignored rather than stored.
    fields = {k: v for k, v in fields.items() if v is not None or k in _NULLABLE_JOB_FIELDS}

    if fields:
        board.update_job(job_id, **fields)
    return Envelope(message="Job updated successfully.", data=JobOut.from_domain(board.get_job(job_id)))


@router.delete("/jobs/{job_id}", response_model=Envelope[None])
def delete_job(
    request: Request,
    job_id: int,
    hard: bool = False,
    principal: Principal = Depends(_poster),
) -> Envelope[None]:
    """Soft delete (is_active=false) by default; ?hard=true removes the row and its applications."""
    board: BoardStore = request.app.state.board_store
    _get_owned_job(request, job_id, principal)
    if hard:
        board.delete_job(job_id)
        logger.info("Job hard-deleted: id=%d by %s id=%d", job_id, principal.kind, principal.id)
        return Envelope(message="Job deleted permanently.")
    board.update_job(job_id, is_active=False)
    logger.info("Job deactivated: id=%d by %s id=%d", job_id, principal.kind, principal.id)
    return Envelope(message="Job deleted successfully.")

