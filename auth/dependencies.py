"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Request flow for a protected route:
  1. extract_bearer_token()   -- "Authorization: Bearer <token>" or 401 missing_token
  2. revocation registry      -- logged-out token -> 401 token_revoked
  3. decode_access_token()    -- bad signature -> 401 token_invalid,
                                 past exp -> 401 token_expired
  4. PrincipalStore lookup    -- unknown id -> 401 principal_not_found,
                                 is_active false -> 403 account_suspended
  5. check_role()             -- role not permitted -> 403 forbidden

Role resolution policy: the principal is re-loaded from the credential store
on every request (step 4) and the STORE's role / active / verified flags are
authoritative. The role claim inside the token is never used for decisions,
so an admin suspension or an employer verification takes effect on the next
request rather than when the token expires.

get_current_principal() runs steps 1-4. require_roles(*roles) returns a
dependency that runs steps 1-5. try_get_current_principal() is the soft variant
for public routes that behave differently for signed-in callers.

Layer rule: no imports from api/ or board/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.models import ROLES, Principal
from auth.revocation import RevocationRegistry
from auth.store import PrincipalStore
from auth.tokens import TokenError, decode_access_token

logger = logging.getLogger("jobboard.auth")

_BEARER_PREFIX = "Bearer "


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": code, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=403, detail={"code": code, "message": message})


def extract_bearer_token(request: Request) -> str:
    """Return the raw token from the Authorization header or raise 401 missing_token."""
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise _unauthorized("missing_token", "Authentication required.")
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise _unauthorized("missing_token", "Authentication required.")
    return token


def resolve_principal(token: str, store: PrincipalStore, revocations: RevocationRegistry) -> Principal:
    """Turn a raw bearer token into the live principal or raise the matching HTTP error.

    Kept free of Request so it can be unit-tested against a bare store.
    """
    if revocations.is_revoked(token):
        raise _unauthorized("token_revoked", "Token has been revoked. Please log in again.")

    try:
        payload = decode_access_token(token)
    except TokenError as exc:
        raise _unauthorized(exc.code, str(exc)) from exc

    principal = store.get_principal(payload["kind"], payload["sub"])
    if principal is None:
        raise _unauthorized("principal_not_found", "Account no longer exists.")
    if not principal.is_active:
        raise _forbidden("account_suspended", "Your account has been suspended. Please contact support.")
    return principal


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Attaches the principal to request.state.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    token = extract_bearer_token(request)
    principal = resolve_principal(
        token,
        request.app.state.principal_store,
        request.app.state.revocations,
    )
    request.state.principal = principal
    request.state.token = token
    return principal


def try_get_current_principal(request: Request) -> Principal | None:
    """Soft variant: the principal when a valid token is present, None otherwise."""
    try:
        return get_current_principal(request)
    except HTTPException:
        return None


def check_role(principal: Principal, allowed_roles: frozenset[str] | set[str] | tuple[str, ...]) -> None:
    """Pure authorization gate. Raises 403 forbidden when the role is not permitted."""
    if principal.role not in allowed_roles:
        raise _forbidden("forbidden", "Access denied. Insufficient permissions.")


def require_roles(*roles: str) -> Callable[[Request], Principal]:
    """Build a dependency that authenticates, then allows only the given roles.

    Use as a FastAPI dependency:
        @router.post("/jobs")
        def route(principal: Principal = Depends(require_roles("employer", "admin"))): ...
    """
    unknown = set(roles) - set(ROLES)
    if unknown:
        raise ValueError(f"Unknown roles: {sorted(unknown)!r}")
    allowed = frozenset(roles)

    def dependency(request: Request) -> Principal:
        principal = get_current_principal(request)
        check_role(principal, allowed)
        return principal

    return dependency


require_admin = require_roles("admin")
