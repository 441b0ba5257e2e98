"""
api/routes/v1/admin.py -- Moderation endpoints. Every route requires the admin role.

Routes:
  GET    /api/v1/admin/users                        -- all users (?role, ?is_active)
  GET    /api/v1/admin/employers                    -- all employers (?is_verified)
  GET    /api/v1/admin/jobs                         -- all jobs, inactive included
  GET    /api/v1/admin/applications                 -- all applications (?status)
  GET    /api/v1/admin/stats                        -- platform counts
  DELETE /api/v1/admin/users/{user_id}
  DELETE /api/v1/admin/employers/{employer_id}
  DELETE /api/v1/admin/applications/{application_id}

Deletes share their implementation with the users/employers route trees so the
cascade rules (applications withdrawn, jobs deactivated) are identical.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.errors import not_found
from api.models import (
    ApplicationOut,
    ApplicationStatusEnum,
    EmployerOut,
    Envelope,
    JobOut,
    StatsOut,
    UserOut,
)
from api.routes.v1.employers import remove_employer
from api.routes.v1.users import remove_user
from auth.dependencies import require_admin
from auth.models import ROLE_ADMIN, ROLE_CANDIDATE, Principal
from auth.store import PrincipalStore
from board.store import BoardStore

logger = logging.getLogger("jobboard.api.admin")

router = APIRouter()


@router.get("/admin/users", response_model=Envelope[list[UserOut]])
def admin_list_users(
    request: Request,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    principal: Principal = Depends(require_admin),
) -> Envelope[list[UserOut]]:
    principals: PrincipalStore = request.app.state.principal_store
    users = principals.list_users(role=role, is_active=is_active)
    return Envelope(data=[UserOut.from_domain(u) for u in users], count=len(users))


@router.get("/admin/employers", response_model=Envelope[list[EmployerOut]])
def admin_list_employers(
    request: Request,
    is_verified: Optional[bool] = None,
    principal: Principal = Depends(require_admin),
) -> Envelope[list[EmployerOut]]:
    principals: PrincipalStore = request.app.state.principal_store
    employers = principals.list_employers(is_verified=is_verified)
    return Envelope(data=[EmployerOut.from_domain(e) for e in employers], count=len(employers))


@router.get("/admin/jobs", response_model=Envelope[list[JobOut]])
def admin_list_jobs(request: Request, principal: Principal = Depends(require_admin)) -> Envelope[list[JobOut]]:
    board: BoardStore = request.app.state.board_store
    jobs = board.list_all_jobs()
    return Envelope(data=[JobOut.from_domain(j) for j in jobs], count=len(jobs))


@router.get("/admin/applications", response_model=Envelope[list[ApplicationOut]])
def admin_list_applications(
    request: Request,
    status: Optional[ApplicationStatusEnum] = None,
    principal: Principal = Depends(require_admin),
) -> Envelope[list[ApplicationOut]]:
    board: BoardStore = request.app.state.board_store
    applications = board.list_applications(status=status.value if status else None)
    return Envelope(data=[ApplicationOut.from_domain(a) for a in applications], count=len(applications))


@router.get("/admin/stats", response_model=Envelope[StatsOut])
def admin_stats(request: Request, principal: Principal = Depends(require_admin)) -> Envelope[StatsOut]:
    return Envelope(data=collect_stats(request.app.state.principal_store, request.app.state.board_store))


def collect_stats(principals: PrincipalStore, board: BoardStore) -> StatsOut:
    """Platform-wide counts. Also used by the `stats` CLI command."""
    return StatsOut(
        users=principals.count_users(),
        candidates=principals.count_users(role=ROLE_CANDIDATE),
        admins=principals.count_users(role=ROLE_ADMIN),
        employers=principals.count_employers(),
        verified_employers=principals.count_employers(is_verified=True),
        jobs=board.count_jobs(),
        active_jobs=board.count_jobs(active=True),
        applications=board.count_applications(),
        applications_by_status=board.application_status_counts(),
    )


@router.delete("/admin/users/{user_id}", response_model=Envelope[None])
def admin_delete_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(require_admin),
) -> Envelope[None]:
    return Envelope(message=remove_user(request, user_id, principal))


@router.delete("/admin/employers/{employer_id}", response_model=Envelope[None])
def admin_delete_employer(
    request: Request,
    employer_id: int,
    principal: Principal = Depends(require_admin),
) -> Envelope[None]:
    return Envelope(message=remove_employer(request, employer_id))


@router.delete("/admin/applications/{application_id}", response_model=Envelope[None])
def admin_delete_application(
    request: Request,
    application_id: int,
    principal: Principal = Depends(require_admin),
) -> Envelope[None]:
    board: BoardStore = request.app.state.board_store
    removed = board.delete_application(application_id)
    if removed is None:
        raise not_found("Application")
    board.decrement_application_count(removed.job_id)
    logger.info("Application %d deleted by admin id=%d", application_id, principal.id)
    return Envelope(message="Application deleted successfully.")
