"""
auth/tokens.py -- JWT, password hashing, and reset-token utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry the
       principal id (sub), the principal kind, the role at issue time, iat and
       exp. The role claim is informational: the verifier re-reads the role
       from the credential store on every request.

       decode_access_token() raises TokenExpired or TokenInvalid rather than
       returning None, so the verifier can report "log in again" (expired)
       separately from "this credential is garbage" (invalid).

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate() so response time does not
       reveal whether an email is registered.

  Reset tokens: secrets.token_hex(32) gives 256 bits of entropy. We store
       HMAC-SHA256(SECRET_KEY, raw_token) so lookup is a single indexed query;
       the raw value only ever travels in the reset email.

Layer rule: no imports from api/ or board/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import Employer, User
    from auth.store import PrincipalStore

logger = logging.getLogger("jobboard.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "kind", "role", "exp")


# ---------------------------------------------------------------------------
# Token errors
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for token verification failures. code is the stable API error code."""

    code = "token_invalid"


class TokenExpired(TokenError):
    code = "token_expired"


class TokenInvalid(TokenError):
    code = "token_invalid"


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password fields at 72 characters so inputs never reach that threshold.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash -- treat as a mismatch rather than a 500.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("jobboard_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(principal_id: int, kind: str, role: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT for a principal.

    Args:
        principal_id:   Database id of the user or employer.
        kind:           "user" or "employer" -- tells the verifier which
                        collection to re-load the principal from.
        role:           Role at issue time (informational).
        expire_seconds: Lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(principal_id),
        "kind": kind,
        "role": role,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
        # Two tokens issued in the same second must differ, or revoking one revokes both.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and expiry and return the payload.

    Raises:
        TokenExpired: the signature is valid but exp has passed.
        TokenInvalid: bad signature, malformed token, or missing claims.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired("Token has expired.") from exc
    except JWTError as exc:
        raise TokenInvalid("Token is invalid.") from exc
    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        raise TokenInvalid("Token is missing required claims.")
    try:
        payload["sub"] = int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise TokenInvalid("Token subject is malformed.") from exc
    return payload


def token_expiry(payload: dict) -> float:
    """Return the exp claim of a decoded payload as a POSIX timestamp.

    Falls back to now + the maximum token lifetime when exp is unreadable, so
    a revocation entry is never kept for less than the token could live.
    """
    exp = payload.get("exp")
    if isinstance(exp, (int, float)):
        return float(exp)
    return datetime.now(timezone.utc).timestamp() + _settings.token_expire_seconds


# ---------------------------------------------------------------------------
# Authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate(store: PrincipalStore, email: str, password: str) -> User | Employer | None:
    """Check an email/password pair against both account collections.

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the account on a password match, None otherwise. Suspension is NOT
    checked here -- the login route reports it with its own 403 so the user
    learns why they cannot sign in.
    """
    account = store.find_by_email(email)
    if account is None or not account.hashed_password:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, account.hashed_password):
        return None
    return account


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a fresh 64-hex-character reset token."""
    return secrets.token_hex(32)


def hash_reset_token(raw_token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_token) as a hex string.

    Deterministic, so the store can look the token up by hash; keyed, so a
    leaked database alone is not enough to forge a reset link.
    """
    return hmac.new(
        _settings.secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


def reset_token_expiry() -> str:
    """ISO 8601 timestamp at which a reset token issued now stops working."""
    expires = datetime.now(timezone.utc) + timedelta(seconds=_settings.reset_token_expire_seconds)
    return expires.isoformat()
