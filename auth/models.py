"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in board/models.py -- dataclasses own domain shape; stores and routes do the
work.

Two account collections exist (users and employers). The auth layer never
branches on which collection a record came from after lookup: both are
normalized into a Principal carrying the fields authorization decisions need.

Layer rule: no imports from api/, board/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Closed enums
# ---------------------------------------------------------------------------

KIND_USER = "user"
KIND_EMPLOYER = "employer"
PRINCIPAL_KINDS = (KIND_USER, KIND_EMPLOYER)

ROLE_CANDIDATE = "candidate"
ROLE_EMPLOYER = "employer"
ROLE_ADMIN = "admin"
ROLE_GUEST = "guest"
ROLES = (ROLE_CANDIDATE, ROLE_EMPLOYER, ROLE_ADMIN, ROLE_GUEST)

# Roles a user-collection record may carry. "employer" lives in its own collection.
USER_ROLES = (ROLE_CANDIDATE, ROLE_ADMIN, ROLE_GUEST)


@dataclass
class User:
    """A person account: candidate, admin, or guest.

    email is stored lower-cased and is unique across users AND employers.
    reset_token_hash is HMAC-SHA256 of the raw reset token; the raw value is
    only ever sent by email.
    """

    name: str
    email: str
    role: str  # "candidate" | "admin" | "guest"
    phone: str = ""
    id: int | None = None
    hashed_password: str | None = None
    is_active: bool = True
    avatar: str | None = None
    professional_title: str | None = None
    location: str | None = None
    skills: list[str] = field(default_factory=list)
    summary: str | None = None
    resume: str | None = None
    reset_token_hash: str | None = None
    reset_token_expires: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Employer:
    """A company account. Role is always "employer".

    is_verified gates job posting; only an admin flips it.
    """

    company_name: str
    email: str
    phone: str = ""
    id: int | None = None
    hashed_password: str | None = None
    is_active: bool = True
    is_verified: bool = False
    industry: str | None = None
    company_size: str | None = None
    website: str | None = None
    description: str | None = None
    location: str | None = None
    logo: str | None = None
    reset_token_hash: str | None = None
    reset_token_expires: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def role(self) -> str:
        return ROLE_EMPLOYER


@dataclass(frozen=True)
class Principal:
    """The acting identity attached to an authenticated request.

    Built by the store from the live record on every request, so a suspension
    or verification change takes effect on the very next call.
    is_verified is None for user principals (the flag only exists for employers).
    """

    id: int
    kind: str  # "user" | "employer"
    role: str
    email: str
    is_active: bool
    is_verified: bool | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
