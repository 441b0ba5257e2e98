"""
API request and response models for the job board REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
board/models.py, which own the internal domain representation. Route handlers
map between the two with the from_domain() factories below.

Separation of concerns: domain models = storage truth; api/ models = API contract.
Password hashes and reset-token hashes never appear in any response model.

Envelope: every success body is Envelope[T] -- {success, message, data, count,
pagination}. Every error body is ErrorResponse -- {success: false, message,
code, detail}.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Employer, User
from board.models import APPLICATION_STATUSES, JOB_CATEGORIES, JOB_TYPES, Application, Job, Page

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one @, no whitespace, a dot in the domain. Deliverability
# is proven by the reset email, not by the regex.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt truncates at 72 bytes; capping here keeps inputs under that threshold.
_PASSWORD_MIN = 6
_PASSWORD_MAX = 72

T = TypeVar("T")


def _normalize_email(value: str) -> str:
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

JobCategoryEnum = Enum("JobCategoryEnum", {c.lower(): c for c in JOB_CATEGORIES}, type=str)
JobTypeEnum = Enum("JobTypeEnum", {t.lower().replace("-", "_"): t for t in JOB_TYPES}, type=str)
ApplicationStatusEnum = Enum("ApplicationStatusEnum", {s: s for s in APPLICATION_STATUSES}, type=str)


class SelfRegisterRoleEnum(str, Enum):
    """Roles a user may pick at self-registration. admin is never self-assigned."""

    candidate = "candidate"
    guest = "guest"


class SortOrderEnum(str, Enum):
    asc = "asc"
    desc = "desc"


class JobSortEnum(str, Enum):
    created_at = "created_at"
    deadline = "deadline"
    views = "views"
    application_count = "application_count"
    title = "title"


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class PaginationMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_page(cls, page: Page) -> "PaginationMeta":
        return cls(
            page=page.page,
            limit=page.limit,
            total=page.total,
            total_pages=page.total_pages,
            has_next=page.page < page.total_pages,
            has_prev=page.page > 1,
        )


class Envelope(BaseModel, Generic[T]):
    """Success envelope shared by every route."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    count: Optional[int] = None
    pagination: Optional[PaginationMeta] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str
    code: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class _EmailModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value) if isinstance(value, str) else value


class UserRegister(_EmailModel):
    """Request body for POST /api/v1/auth/register."""

    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=_PASSWORD_MIN, max_length=_PASSWORD_MAX)
    phone: str = Field(default="", max_length=50)
    role: SelfRegisterRoleEnum = SelfRegisterRoleEnum.candidate


class EmployerRegister(_EmailModel):
    """Request body for POST /api/v1/auth/employers/register."""

    company_name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=_PASSWORD_MIN, max_length=_PASSWORD_MAX)
    phone: str = Field(default="", max_length=50)
    industry: Optional[str] = Field(default=None, max_length=100)
    company_size: Optional[str] = Field(default=None, max_length=50)
    website: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    location: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(_EmailModel):
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    new_password: str = Field(min_length=_PASSWORD_MIN, max_length=_PASSWORD_MAX)


class ResetRequest(_EmailModel):
    pass


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=_PASSWORD_MIN, max_length=_PASSWORD_MAX)


# ---------------------------------------------------------------------------
# Accounts -- response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    kind: str = "user"
    name: str
    email: str
    phone: str
    role: str
    is_active: bool
    avatar: Optional[str]
    professional_title: Optional[str]
    location: Optional[str]
    skills: list[str]
    summary: Optional[str]
    resume: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, user: User) -> "UserOut":
        """Factory Method -- the mapping lives beside the output model, not in routes."""
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            role=user.role,
            is_active=user.is_active,
            avatar=user.avatar,
            professional_title=user.professional_title,
            location=user.location,
            skills=user.skills,
            summary=user.summary,
            resume=user.resume,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class EmployerOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    kind: str = "employer"
    role: str = "employer"
    company_name: str
    email: str
    phone: str
    is_active: bool
    is_verified: bool
    industry: Optional[str]
    company_size: Optional[str]
    website: Optional[str]
    description: Optional[str]
    location: Optional[str]
    logo: Optional[str]
    created_at: str
    updated_at: str
    active_jobs: Optional[int] = None

    @classmethod
    def from_domain(cls, employer: Employer, active_jobs: Optional[int] = None) -> "EmployerOut":
        return cls(
            id=employer.id,
            company_name=employer.company_name,
            email=employer.email,
            phone=employer.phone,
            is_active=employer.is_active,
            is_verified=employer.is_verified,
            industry=employer.industry,
            company_size=employer.company_size,
            website=employer.website,
            description=employer.description,
            location=employer.location,
            logo=employer.logo,
            created_at=employer.created_at,
            updated_at=employer.updated_at,
            active_jobs=active_jobs,
        )


AccountOut = Union[UserOut, EmployerOut]


def account_out(account: Union[User, Employer]) -> AccountOut:
    if isinstance(account, Employer):
        return EmployerOut.from_domain(account)
    return UserOut.from_domain(account)


class AuthData(BaseModel):
    """Returned by register, employer register and login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    account: AccountOut


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}. Only supplied fields change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    avatar: Optional[str] = Field(default=None, max_length=2048)
    professional_title: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    skills: Optional[list[str]] = Field(default=None, max_length=50)
    summary: Optional[str] = Field(default=None, max_length=5000)
    resume: Optional[str] = Field(default=None, max_length=2048)


class EmployerUpdate(BaseModel):
    """Request body for PUT /api/v1/employers/{id}. is_verified is admin-only via PATCH .../verify."""

    model_config = ConfigDict(str_strip_whitespace=True)

    company_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    industry: Optional[str] = Field(default=None, max_length=100)
    company_size: Optional[str] = Field(default=None, max_length=50)
    website: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    location: Optional[str] = Field(default=None, max_length=255)
    logo: Optional[str] = Field(default=None, max_length=2048)


class StatusToggle(BaseModel):
    """Request body for PATCH /users/{id}/status. Omit is_active to flip the current value."""

    is_active: Optional[bool] = None


class VerifyRequest(BaseModel):
    """Request body for PATCH /employers/{id}/verify. Omit to verify."""

    is_verified: bool = True


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class JobCreate(BaseModel):
    """Request body for POST /api/v1/jobs.

    employer_id is required when an admin posts on behalf of an employer and
    ignored when an employer posts (the job is always its own). company
    defaults to the employer's company_name.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=20000)
    company: Optional[str] = Field(default=None, max_length=255)
    requirements: list[str] = Field(default_factory=list, max_length=50)
    responsibilities: list[str] = Field(default_factory=list, max_length=50)
    category: JobCategoryEnum
    job_type: JobTypeEnum
    location: str = Field(min_length=1, max_length=255)
    salary: Optional[str] = Field(default=None, max_length=100)
    experience: Optional[str] = Field(default=None, max_length=100)
    education: Optional[str] = Field(default=None, max_length=255)
    tags: list[str] = Field(default_factory=list, max_length=30)
    image: Optional[str] = Field(default=None, max_length=2048)
    deadline: datetime
    featured: bool = False
    employer_id: Optional[int] = None

    @field_validator("deadline")
    @classmethod
    def deadline_aware(cls, value: datetime) -> datetime:
        """Naive datetimes are taken as UTC so comparisons never mix naive and aware."""
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class JobUpdate(BaseModel):
    """Request body for PUT /api/v1/jobs/{id}. Counters and ownership are not updatable."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=20000)
    company: Optional[str] = Field(default=None, min_length=1, max_length=255)
    requirements: Optional[list[str]] = Field(default=None, max_length=50)
    responsibilities: Optional[list[str]] = Field(default=None, max_length=50)
    category: Optional[JobCategoryEnum] = None
    job_type: Optional[JobTypeEnum] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    salary: Optional[str] = Field(default=None, max_length=100)
    experience: Optional[str] = Field(default=None, max_length=100)
    education: Optional[str] = Field(default=None, max_length=255)
    tags: Optional[list[str]] = Field(default=None, max_length=30)
    image: Optional[str] = Field(default=None, max_length=2048)
    deadline: Optional[datetime] = None
    featured: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("deadline")
    @classmethod
    def deadline_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None or value.tzinfo:
            return value
        return value.replace(tzinfo=timezone.utc)


class JobOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    company: str
    requirements: list[str]
    responsibilities: list[str]
    category: str
    job_type: str
    location: str
    salary: Optional[str]
    experience: Optional[str]
    education: Optional[str]
    tags: list[str]
    image: Optional[str]
    deadline: str
    employer_id: int
    featured: bool
    views: int
    application_count: int
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, job: Job) -> "JobOut":
        return cls(
            id=job.id,
            title=job.title,
            description=job.description,
            company=job.company,
            requirements=job.requirements,
            responsibilities=job.responsibilities,
            category=job.category,
            job_type=job.job_type,
            location=job.location,
            salary=job.salary,
            experience=job.experience,
            education=job.education,
            tags=job.tags,
            image=job.image,
            deadline=job.deadline,
            employer_id=job.employer_id,
            featured=job.featured,
            views=job.views,
            application_count=job.application_count,
            is_active=job.is_active,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


class ApplicationCreate(BaseModel):
    """Request body for POST /api/v1/applications.

    name, email and resume fall back to the candidate's profile when omitted.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    job_id: int
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    resume: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    cover_letter: Optional[str] = Field(default=None, max_length=10000)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value) if isinstance(value, str) else value


class ApplicationStatusUpdate(BaseModel):
    """Request body for PUT /api/v1/applications/{id}/status."""

    model_config = ConfigDict(str_strip_whitespace=True)

    status: ApplicationStatusEnum
    notes: Optional[str] = Field(default=None, max_length=5000)


class ApplicationOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    job_id: int
    candidate_id: int
    employer_id: int
    name: str
    email: str
    resume: str
    cover_letter: Optional[str]
    status: str
    notes: Optional[str]
    submitted_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, application: Application) -> "ApplicationOut":
        return cls(
            id=application.id,
            job_id=application.job_id,
            candidate_id=application.candidate_id,
            employer_id=application.employer_id,
            name=application.name,
            email=application.email,
            resume=application.resume,
            cover_letter=application.cover_letter,
            status=application.status,
            notes=application.notes,
            submitted_at=application.submitted_at,
            updated_at=application.updated_at,
        )


# ---------------------------------------------------------------------------
# Uploads and admin
# ---------------------------------------------------------------------------


class UploadOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    field: str


class StatsOut(BaseModel):
    """Response data for GET /api/v1/admin/stats."""

    model_config = ConfigDict(frozen=True)

    users: int
    candidates: int
    admins: int
    employers: int
    verified_employers: int
    jobs: int
    active_jobs: int
    applications: int
    applications_by_status: dict[str, int]
