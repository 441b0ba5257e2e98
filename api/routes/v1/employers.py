"""
api/routes/v1/employers.py -- Employer directory and profile management.

Routes:
  GET    /api/v1/employers                        -- filtered directory (public)
  GET    /api/v1/employers/top                    -- top 10 verified employers by active jobs (public)
  GET    /api/v1/employers/{employer_id}          -- one profile (public)
  PUT    /api/v1/employers/{employer_id}          -- update profile (that employer or admin)
  PATCH  /api/v1/employers/{employer_id}/verify   -- set is_verified (admin)
  DELETE /api/v1/employers/{employer_id}          -- delete account, deactivate its jobs (that employer or admin)
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.errors import forbidden, not_found
from api.models import EmployerOut, EmployerUpdate, Envelope, VerifyRequest
from auth.dependencies import require_admin, require_roles
from auth.models import ROLE_ADMIN, ROLE_EMPLOYER, Principal
from auth.store import PrincipalStore
from board.store import BoardStore

logger = logging.getLogger("jobboard.api.employers")

_TOP_LIMIT = 10

# Auth policy:
# - GET    /employers, /employers/top, /employers/{id}:  public
# - PUT    /employers/{id}:                              that employer or admin
# - PATCH  /employers/{id}/verify:                       admin
# - DELETE /employers/{id}:                              that employer or admin
router = APIRouter()

_self_or_admin = require_roles(ROLE_EMPLOYER, ROLE_ADMIN)

_NULLABLE_EMPLOYER_FIELDS = ("industry", "company_size", "website", "description", "location", "logo")


def _check_self_or_admin(principal: Principal, employer_id: int) -> None:
    if principal.is_admin:
        return
    if principal.role == ROLE_EMPLOYER and principal.id == employer_id:
        return
    raise forbidden("You can only manage your own employer profile.")


@router.get("/employers", response_model=Envelope[list[EmployerOut]])
def list_employers(
    request: Request,
    company_name: Optional[str] = Query(default=None, max_length=100),
    location: Optional[str] = Query(default=None, max_length=100),
    industry: Optional[str] = Query(default=None, max_length=100),
    is_verified: Optional[bool] = None,
) -> Envelope[list[EmployerOut]]:
    principals: PrincipalStore = request.app.state.principal_store
    employers = principals.list_employers(
        company_name=company_name,
        location=location,
        industry=industry,
        is_verified=is_verified,
    )
    return Envelope(data=[EmployerOut.from_domain(e) for e in employers], count=len(employers))


@router.get("/employers/top", response_model=Envelope[list[EmployerOut]])
def top_employers(request: Request) -> Envelope[list[EmployerOut]]:
    """Verified employers with at least one active job, most active jobs first."""
    principals: PrincipalStore = request.app.state.principal_store
    board: BoardStore = request.app.state.board_store

    counts = board.active_job_counts_by_employer()
    ranked = sorted(
        (e for e in principals.list_employers(is_verified=True) if counts.get(e.id, 0) > 0),
        key=lambda e: counts[e.id],
        reverse=True,
    )[:_TOP_LIMIT]
    data = [EmployerOut.from_domain(e, active_jobs=counts[e.id]) for e in ranked]
    return Envelope(data=data, count=len(data))


@router.get("/employers/{employer_id}", response_model=Envelope[EmployerOut])
def get_employer(request: Request, employer_id: int) -> Envelope[EmployerOut]:
    principals: PrincipalStore = request.app.state.principal_store
    employer = principals.get_employer(employer_id)
    if employer is None:
        raise not_found("Employer")
    return Envelope(data=EmployerOut.from_domain(employer))


@router.put("/employers/{employer_id}", response_model=Envelope[EmployerOut])
def update_employer(
    request: Request,
    employer_id: int,
    body: EmployerUpdate,
    principal: Principal = Depends(_self_or_admin),
) -> Envelope[EmployerOut]:
    _check_self_or_admin(principal, employer_id)
    principals: PrincipalStore = request.app.state.principal_store
    if principals.get_employer(employer_id) is None:
        raise not_found("Employer")

    fields = body.model_dump(exclude_unset=True)
    # Explicit nulls on required columns are ignored rather than stored.
    fields = {k: v for k, v in fields.items() if v is not None or k in _NULLABLE_EMPLOYER_FIELDS}
    if fields:
        principals.update_employer(employer_id, **fields)
    employer = principals.get_employer(employer_id)
    return Envelope(message="Employer updated successfully.", data=EmployerOut.from_domain(employer))


@router.patch("/employers/{employer_id}/verify", response_model=Envelope[EmployerOut])
def verify_employer(
    request: Request,
    employer_id: int,
    body: Optional[VerifyRequest] = None,
    principal: Principal = Depends(require_admin),
) -> Envelope[EmployerOut]:
    """Set the verification flag. An empty body verifies."""
    is_verified = body.is_verified if body is not None else True
    principals: PrincipalStore = request.app.state.principal_store
    if not principals.update_employer(employer_id, is_verified=is_verified):
        raise not_found("Employer")
    logger.info("Employer %d is_verified=%s by admin id=%d", employer_id, is_verified, principal.id)
    message = "Employer verified." if is_verified else "Employer verification revoked."
    return Envelope(message=message, data=EmployerOut.from_domain(principals.get_employer(employer_id)))


@router.delete("/employers/{employer_id}", response_model=Envelope[None])
def delete_employer(
    request: Request,
    employer_id: int,
    principal: Principal = Depends(_self_or_admin),
) -> Envelope[None]:
    _check_self_or_admin(principal, employer_id)
    return Envelope(message=remove_employer(request, employer_id))


def remove_employer(request: Request, employer_id: int) -> str:
    """Deactivate every job of the employer, then delete the account.

    Shared with the admin route tree. Raises 404 when the employer is unknown.
    """
    principals: PrincipalStore = request.app.state.principal_store
    board: BoardStore = request.app.state.board_store
    if principals.get_employer(employer_id) is None:
        raise not_found("Employer")
    deactivated = board.deactivate_jobs_for_employer(employer_id)
    principals.delete_employer(employer_id)
    logger.info("Employer %d deleted; %d job(s) deactivated", employer_id, deactivated)
    return "Employer deleted successfully."
