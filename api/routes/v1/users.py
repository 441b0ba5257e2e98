"""
api/routes/v1/users.py -- User profile management.

Routes:
  GET    /api/v1/users/{user_id}          -- profile (that user or admin)
  PUT    /api/v1/users/{user_id}          -- update profile (that user or admin)
  DELETE /api/v1/users/{user_id}          -- delete account and its applications (admin)
  PATCH  /api/v1/users/{user_id}/status   -- suspend / reactivate (admin)

Security:
  Role changes are not exposed here; role is fixed at registration or by the CLI.
  An admin cannot suspend or delete its own account, and the last active admin
  cannot be removed, so the system is never left without an administrator.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.errors import bad_request, forbidden, not_found
from api.models import Envelope, StatusToggle, UserOut, UserUpdate
from auth.dependencies import get_current_principal, require_admin
from auth.models import KIND_USER, ROLE_ADMIN, Principal
from auth.store import PrincipalStore
from board.store import BoardStore

logger = logging.getLogger("jobboard.api.users")

# Auth policy:
# - GET / PUT /users/{id}:          that user or admin
# - DELETE /users/{id}:             admin
# - PATCH  /users/{id}/status:      admin
router = APIRouter()

_NULLABLE_USER_FIELDS = ("avatar", "professional_title", "location", "skills", "summary", "resume")


def _check_self_or_admin(principal: Principal, user_id: int) -> None:
    if principal.is_admin or (principal.kind == KIND_USER and principal.id == user_id):
        return
    raise forbidden("You can only access your own profile.")


@router.get("/users/{user_id}", response_model=Envelope[UserOut])
def get_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
) -> Envelope[UserOut]:
    _check_self_or_admin(principal, user_id)
    principals: PrincipalStore = request.app.state.principal_store
    user = principals.get_user(user_id)
    if user is None:
        raise not_found("User")
    return Envelope(data=UserOut.from_domain(user))


@router.put("/users/{user_id}", response_model=Envelope[UserOut])
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    principal: Principal = Depends(get_current_principal),
) -> Envelope[UserOut]:
    _check_self_or_admin(principal, user_id)
    principals: PrincipalStore = request.app.state.principal_store
    if principals.get_user(user_id) is None:
        raise not_found("User")

    fields = body.model_dump(exclude_unset=True)
    # Explicit nulls on required columns are ignored rather than stored.
    fields = {k: v for k, v in fields.items() if v is not None or k in _NULLABLE_USER_FIELDS}
    if fields:
        principals.update_user(user_id, **fields)
    return Envelope(message="Profile updated successfully.", data=UserOut.from_domain(principals.get_user(user_id)))


@router.delete("/users/{user_id}", response_model=Envelope[None])
def delete_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(require_admin),
) -> Envelope[None]:
    return Envelope(message=remove_user(request, user_id, principal))


@router.patch("/users/{user_id}/status", response_model=Envelope[UserOut])
def set_user_status(
    request: Request,
    user_id: int,
    body: StatusToggle | None = None,
    principal: Principal = Depends(require_admin),
) -> Envelope[UserOut]:
    """Suspend or reactivate a user. Without a body the current flag is flipped.

    A suspended user's next request fails with 403 account_suspended because
    the verifier re-reads is_active on every request.
    """
    principals: PrincipalStore = request.app.state.principal_store
    user = principals.get_user(user_id)
    if user is None:
        raise not_found("User")

    is_active = body.is_active if body is not None and body.is_active is not None else not user.is_active
    if not is_active:
        if principal.id == user_id:
            raise bad_request("cannot_suspend_self", "You cannot suspend your own account.")
        if user.role == ROLE_ADMIN and user.is_active and principals.count_active_admins() <= 1:
            raise bad_request("last_admin", "Cannot suspend the last active admin.")

    principals.update_user(user_id, is_active=is_active)
    logger.info("User %d is_active=%s by admin id=%d", user_id, is_active, principal.id)
    message = "User activated." if is_active else "User suspended."
    return Envelope(message=message, data=UserOut.from_domain(principals.get_user(user_id)))


def remove_user(request: Request, user_id: int, principal: Principal) -> str:
    """Delete a user and withdraw its applications. Shared with the admin route tree."""
    principals: PrincipalStore = request.app.state.principal_store
    board: BoardStore = request.app.state.board_store
    user = principals.get_user(user_id)
    if user is None:
        raise not_found("User")
    if principal.kind == KIND_USER and principal.id == user_id:
        raise bad_request("cannot_delete_self", "You cannot delete your own account.")
    if user.role == ROLE_ADMIN and user.is_active and principals.count_active_admins() <= 1:
        raise bad_request("last_admin", "Cannot delete the last active admin.")

    withdrawn = board.delete_applications_for_candidate(user_id)
    principals.delete_user(user_id)
    logger.info("User %d deleted by admin id=%d; %d application(s) removed", user_id, principal.id, withdrawn)
    return "User deleted successfully."
