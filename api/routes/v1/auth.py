"""
api/routes/v1/auth.py -- Registration, login, logout and password management.

Routes:
  POST /api/v1/auth/register             -- register a candidate or guest; returns token
  POST /api/v1/auth/employers/register   -- register an (unverified) employer; returns token
  POST /api/v1/auth/login                -- email + password across users and employers
  POST /api/v1/auth/logout               -- revoke the presented token (requires auth)
  GET  /api/v1/auth/me                   -- current principal's profile (requires auth)
  POST /api/v1/auth/change-password      -- requires auth and the current password
  POST /api/v1/auth/request-reset        -- email a one-hour reset link
  POST /api/v1/auth/reset-password       -- consume a reset token

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  authenticate() provides timing equalization -- use it, never inline the lookup.
  Wrong email and wrong password share one error ("bad_credentials").
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.errors import api_error, bad_request, not_found
from api.limiter import limiter
from api.models import (
    AccountOut,
    AuthData,
    ChangePasswordRequest,
    EmployerRegister,
    Envelope,
    LoginRequest,
    ResetPasswordRequest,
    ResetRequest,
    UserRegister,
    account_out,
)
from auth.dependencies import get_current_principal
from auth.models import Employer, Principal, User
from auth.store import PrincipalStore, to_principal
from auth.tokens import (
    TokenError,
    authenticate,
    create_access_token,
    decode_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    reset_token_expiry,
    token_expiry,
    verify_password,
)
from core.config import get_settings
from core.mailer import password_changed_mail, password_reset_mail, send_mail, welcome_mail

logger = logging.getLogger("jobboard.api.auth")

_settings = get_settings()

# Auth policy:
# - POST /auth/register, /auth/employers/register, /auth/login:   public
# - POST /auth/request-reset, /auth/reset-password:                public
# - POST /auth/logout, /auth/change-password, GET /auth/me:        requires auth
router = APIRouter()


def _email_taken() -> HTTPException:
    return bad_request("email_taken", "An account with this email already exists.")


def _auth_data(account: User | Employer) -> AuthData:
    principal = to_principal(account)
    token = create_access_token(principal.id, principal.kind, principal.role)
    return AuthData(
        access_token=token,
        expires_in=_settings.token_expire_seconds,
        account=account_out(account),
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=Envelope[AuthData], status_code=201)
def register(
    request: Request,
    response: Response,
    body: UserRegister,
    background_tasks: BackgroundTasks,
) -> Envelope[AuthData]:
    """Create a candidate (default) or guest account and sign it in.

    The cross-collection email check runs first; the users.email UNIQUE
    constraint catches the race where two requests pass the check together.
    """
    store: PrincipalStore = request.app.state.principal_store
    if store.email_exists(body.email):
        raise _email_taken()

    try:
        user_id = store.create_user(
            User(
                name=body.name,
                email=body.email,
                role=body.role.value,
                phone=body.phone,
                hashed_password=hash_password(body.password),
            )
        )
    except IntegrityError as exc:
        raise _email_taken() from exc

    user = store.get_user(user_id)
    logger.info("User registered: id=%d role=%s", user_id, user.role)
    background_tasks.add_task(send_mail, user.email, welcome_mail(user.name))
    response.headers["Cache-Control"] = "no-store"
    return Envelope(message="Registration successful.", data=_auth_data(user))


@router.post("/auth/employers/register", response_model=Envelope[AuthData], status_code=201)
def register_employer(
    request: Request,
    response: Response,
    body: EmployerRegister,
    background_tasks: BackgroundTasks,
) -> Envelope[AuthData]:
    """Create an employer account. New employers cannot post jobs until an admin verifies them."""
    store: PrincipalStore = request.app.state.principal_store
    if store.email_exists(body.email):
        raise _email_taken()

    try:
        employer_id = store.create_employer(
            Employer(
                company_name=body.company_name,
                email=body.email,
                phone=body.phone,
                hashed_password=hash_password(body.password),
                industry=body.industry,
                company_size=body.company_size,
                website=body.website,
                description=body.description,
                location=body.location,
            )
        )
    except IntegrityError as exc:
        raise _email_taken() from exc

    employer = store.get_employer(employer_id)
    logger.info("Employer registered: id=%d", employer_id)
    background_tasks.add_task(send_mail, employer.email, welcome_mail(employer.company_name))
    response.headers["Cache-Control"] = "no-store"
    return Envelope(message="Employer registration successful.", data=_auth_data(employer))


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=Envelope[AuthData])
def login(request: Request, response: Response, body: LoginRequest) -> Envelope[AuthData]:
    """Authenticate with email and password; users are checked before employers.

    A correct password on a suspended account returns 403 account_suspended
    so the owner learns why sign-in failed. Nothing is revealed for a wrong
    password.
    """
    response.headers["Cache-Control"] = "no-store"
    store: PrincipalStore = request.app.state.principal_store
    account = authenticate(store, body.email, body.password)
    if account is None:
        raise api_error(401, "bad_credentials", "Invalid email or password.")
    if not account.is_active:
        raise api_error(403, "account_suspended", "Your account has been suspended. Please contact support.")
    return Envelope(message="Login successful.", data=_auth_data(account))


@router.post("/auth/logout", response_model=Envelope[None])
def logout(request: Request, principal: Principal = Depends(get_current_principal)) -> Envelope[None]:
    """Revoke the presented token until it would have expired on its own."""
    token: str = request.state.token
    try:
        payload = decode_access_token(token)
    except TokenError:
        # Expired since verification; the signature check rejects it from now on.
        return Envelope(message="Logged out successfully.")
    request.app.state.revocations.revoke(token, token_expiry(payload))
    logger.info("Token revoked for %s id=%d", principal.kind, principal.id)
    return Envelope(message="Logged out successfully.")


@router.get("/auth/me", response_model=Envelope[AccountOut])
def me(request: Request, principal: Principal = Depends(get_current_principal)) -> Envelope[AccountOut]:
    store: PrincipalStore = request.app.state.principal_store
    account = store.get_account(principal.kind, principal.id)
    if account is None:
        raise not_found("Account")
    return Envelope(data=account_out(account))


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


@router.post("/auth/change-password", response_model=Envelope[None])
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
) -> Envelope[None]:
    store: PrincipalStore = request.app.state.principal_store
    account = store.get_account(principal.kind, principal.id)
    if account is None:
        raise not_found("Account")
    if not verify_password(body.current_password, account.hashed_password):
        raise bad_request("bad_password", "Current password is incorrect.")

    store.set_password(principal.kind, principal.id, hash_password(body.new_password))
    background_tasks.add_task(send_mail, account.email, password_changed_mail())
    return Envelope(message="Password changed successfully.")


@router.post("/auth/request-reset", response_model=Envelope[None])
def request_reset(request: Request, body: ResetRequest, background_tasks: BackgroundTasks) -> Envelope[None]:
    """Issue a one-hour reset token and email the link.

    Only the HMAC of the token is stored; the raw value exists in the email alone.
    """
    store: PrincipalStore = request.app.state.principal_store
    account = store.find_by_email(body.email)
    if account is None:
        raise not_found("Account")

    raw_token = generate_reset_token()
    principal = to_principal(account)
    store.set_reset_token(principal.kind, principal.id, hash_reset_token(raw_token), reset_token_expiry())

    reset_url = f"{_settings.frontend_url.rstrip('/')}/reset-password?token={raw_token}"
    background_tasks.add_task(send_mail, account.email, password_reset_mail(reset_url))
    return Envelope(message="Password reset email sent.")


@router.post("/auth/reset-password", response_model=Envelope[None])
def reset_password(request: Request, body: ResetPasswordRequest) -> Envelope[None]:
    store: PrincipalStore = request.app.state.principal_store
    account = store.find_by_reset_token(hash_reset_token(body.token))
    if account is None:
        raise bad_request("invalid_reset_token", "Reset token is invalid or has expired.")

    principal = to_principal(account)
    store.set_password(principal.kind, principal.id, hash_password(body.new_password))
    logger.info("Password reset for %s id=%d", principal.kind, principal.id)
    return Envelope(message="Password has been reset. You can now log in.")
