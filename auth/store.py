"""
auth/store.py -- SQLAlchemy Core persistence layer for account records.

Pattern: Repository + Data Mapper (same as board/store.py).
PrincipalStore is the repository for both account collections (users and
employers); _row_to_user / _row_to_employer are the mappers. Route and
dependency code never touches SQL directly.

Polymorphic lookup:
  get_principal(kind, id) is the single entry point the token verifier uses.
  It dispatches on the kind tag carried by the token and returns a normalized
  Principal regardless of which table backs it. find_by_email() does the same
  for login, checking users first and then employers.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness spans both tables. Every account insert also writes its
  email into account_emails, whose primary key makes the database reject a
  second owner even when two registrations race past email_exists().

Layer rule: no imports from api/, board/, or core/.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import KIND_EMPLOYER, KIND_USER, Employer, Principal, User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'jobboard.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(50), nullable=False, server_default=""),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="candidate"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("avatar", Text),
    Column("professional_title", String(255)),
    Column("location", String(255)),
    Column("skills", Text),  # JSON array serialized as text
    Column("summary", Text),
    Column("resume", Text),
    Column("reset_token_hash", String(64)),
    Column("reset_token_expires", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_users_role", "role"),
    Index("ix_users_created_at", "created_at"),
    Index("ix_users_reset_token_hash", "reset_token_hash"),
)

_employers = Table(
    "employers",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("company_name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(50), nullable=False, server_default=""),
    Column("hashed_password", Text, nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("industry", String(100)),
    Column("company_size", String(50)),
    Column("website", String(255)),
    Column("description", Text),
    Column("location", String(255)),
    Column("logo", Text),
    Column("reset_token_hash", String(64)),
    Column("reset_token_expires", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_employers_company_name", "company_name"),
    Index("ix_employers_is_verified", "is_verified"),
    Index("ix_employers_created_at", "created_at"),
    Index("ix_employers_reset_token_hash", "reset_token_hash"),
)

# One row per account of either kind. Written in the same transaction as the
# account row so the UNIQUE rule holds across both tables.
_account_emails = Table(
    "account_emails",
    _metadata,
    Column("email", String(255), primary_key=True),
    Column("kind", String(20), nullable=False),
    Column("account_id", Integer, nullable=False),
)

# Columns a caller may change through update_user / update_employer. Anything
# else (id, email, hashed_password, timestamps) has a dedicated method.
_USER_MUTABLE = {
    "name",
    "phone",
    "role",
    "is_active",
    "avatar",
    "professional_title",
    "location",
    "skills",
    "summary",
    "resume",
}
_EMPLOYER_MUTABLE = {
    "company_name",
    "phone",
    "is_active",
    "is_verified",
    "industry",
    "company_size",
    "website",
    "description",
    "location",
    "logo",
}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _table_for(kind: str) -> Table:
    if kind == KIND_USER:
        return _users
    if kind == KIND_EMPLOYER:
        return _employers
    raise ValueError(f"Unknown principal kind: {kind!r}")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _claim_email(conn, email: str, kind: str, account_id: int) -> None:
    """Register email for an account. Raises IntegrityError if another account owns it."""
    conn.execute(_account_emails.insert().values(email=email, kind=kind, account_id=account_id))


def _release_email(conn, kind: str, account_id: int) -> None:
    conn.execute(
        _account_emails.delete().where((_account_emails.c.kind == kind) & (_account_emails.c.account_id == account_id))
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PrincipalStore:
    """Repository for User and Employer accounts.

    Usage:
        store = PrincipalStore()
        user_id = store.create_user(User(name="Ada", email="ada@example.com", role="candidate",
                                          hashed_password=hash_password("secret")))
        principal = store.get_principal("user", user_id)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Polymorphic lookups
    # ------------------------------------------------------------------

    def email_exists(self, email: str) -> bool:
        """Return True if any user or employer already owns this email."""
        email = _normalize_email(email)
        with self.engine.connect() as conn:
            row = conn.execute(select(_account_emails.c.email).where(_account_emails.c.email == email)).fetchone()
        return row is not None

    def find_by_email(self, email: str) -> User | Employer | None:
        """Return the account owning this email, checking users before employers."""
        user = self.get_user_by_email(email)
        if user is not None:
            return user
        return self.get_employer_by_email(email)

    def get_account(self, kind: str, principal_id: int) -> User | Employer | None:
        if kind == KIND_USER:
            return self.get_user(principal_id)
        if kind == KIND_EMPLOYER:
            return self.get_employer(principal_id)
        return None

    def get_principal(self, kind: str, principal_id: int) -> Principal | None:
        """Load the live record for (kind, id) and normalize it.

        Returns None for an unknown kind or a missing record. The verifier
        calls this on every authenticated request.
        """
        account = self.get_account(kind, principal_id)
        return to_principal(account) if account is not None else None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if any user or employer already
        owns the email. Nothing is written in that case.
        """
        now = _now_iso()
        email = _normalize_email(user.email)
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=email,
                    phone=user.phone,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    is_active=1 if user.is_active else 0,
                    avatar=user.avatar,
                    professional_title=user.professional_title,
                    location=user.location,
                    skills=json.dumps(user.skills),
                    summary=user.summary,
                    resume=user.resume,
                    created_at=now,
                    updated_at=now,
                )
            )
            user_id = result.inserted_primary_key[0]
            _claim_email(conn, email, KIND_USER, user_id)
            conn.commit()
            return user_id

    def get_user(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == _normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, role: str | None = None, is_active: bool | None = None) -> list[User]:
        """Return users newest first, optionally filtered by role and active flag."""
        stmt = _users.select()
        if role is not None:
            stmt = stmt.where(_users.c.role == role)
        if is_active is not None:
            stmt = stmt.where(_users.c.is_active == (1 if is_active else 0))
        stmt = stmt.order_by(_users.c.created_at.desc(), _users.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable profile fields. Returns False if user_id was not found.

        Unknown field names raise ValueError rather than being silently dropped.
        """
        values = _prepare_update(fields, _USER_MUTABLE)
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            _release_email(conn, KIND_USER, user_id)
            conn.commit()
        return result.rowcount > 0

    def count_users(self, role: str | None = None) -> int:
        stmt = select(func.count()).select_from(_users)
        if role is not None:
            stmt = stmt.where(_users.c.role == role)
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    def count_active_admins(self) -> int:
        """Number of active admins. Guards against suspending or deleting the last one."""
        stmt = select(func.count()).select_from(_users).where((_users.c.role == "admin") & (_users.c.is_active == 1))
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    # ------------------------------------------------------------------
    # Employers
    # ------------------------------------------------------------------

    def create_employer(self, employer: Employer) -> int:
        """Insert a new employer (unverified unless stated) and return its ID."""
        now = _now_iso()
        email = _normalize_email(employer.email)
        with self.engine.connect() as conn:
            result = conn.execute(
                _employers.insert().values(
                    company_name=employer.company_name,
                    email=email,
                    phone=employer.phone,
                    hashed_password=employer.hashed_password,
                    is_active=1 if employer.is_active else 0,
                    is_verified=1 if employer.is_verified else 0,
                    industry=employer.industry,
                    company_size=employer.company_size,
                    website=employer.website,
                    description=employer.description,
                    location=employer.location,
                    logo=employer.logo,
                    created_at=now,
                    updated_at=now,
                )
            )
            employer_id = result.inserted_primary_key[0]
            _claim_email(conn, email, KIND_EMPLOYER, employer_id)
            conn.commit()
            return employer_id

    def get_employer(self, employer_id: int) -> Employer | None:
        with self.engine.connect() as conn:
            row = conn.execute(_employers.select().where(_employers.c.id == employer_id)).fetchone()
        return _row_to_employer(row) if row is not None else None

    def get_employer_by_email(self, email: str) -> Employer | None:
        with self.engine.connect() as conn:
            row = conn.execute(_employers.select().where(_employers.c.email == _normalize_email(email))).fetchone()
        return _row_to_employer(row) if row is not None else None

    def list_employers(
        self,
        company_name: str | None = None,
        location: str | None = None,
        industry: str | None = None,
        is_verified: bool | None = None,
    ) -> list[Employer]:
        """Return employers matching every supplied filter (AND-combined).

        company_name and location are case-insensitive substring matches;
        industry and is_verified are exact.
        """
        stmt = _employers.select()
        if company_name:
            stmt = stmt.where(_employers.c.company_name.icontains(company_name, autoescape=True))
        if location:
            stmt = stmt.where(_employers.c.location.icontains(location, autoescape=True))
        if industry:
            stmt = stmt.where(_employers.c.industry == industry)
        if is_verified is not None:
            stmt = stmt.where(_employers.c.is_verified == (1 if is_verified else 0))
        stmt = stmt.order_by(_employers.c.created_at.desc(), _employers.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_employer(r) for r in rows]

    def get_employers_by_ids(self, employer_ids: list[int]) -> dict[int, Employer]:
        if not employer_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_employers.select().where(_employers.c.id.in_(employer_ids))).fetchall()
        return {r.id: _row_to_employer(r) for r in rows}

    def update_employer(self, employer_id: int, **fields) -> bool:
        values = _prepare_update(fields, _EMPLOYER_MUTABLE)
        with self.engine.connect() as conn:
            result = conn.execute(_employers.update().where(_employers.c.id == employer_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_employer(self, employer_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_employers.delete().where(_employers.c.id == employer_id))
            _release_email(conn, KIND_EMPLOYER, employer_id)
            conn.commit()
        return result.rowcount > 0

    def count_employers(self, is_verified: bool | None = None) -> int:
        stmt = select(func.count()).select_from(_employers)
        if is_verified is not None:
            stmt = stmt.where(_employers.c.is_verified == (1 if is_verified else 0))
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    # ------------------------------------------------------------------
    # Credentials (both kinds)
    # ------------------------------------------------------------------

    def set_password(self, kind: str, principal_id: int, hashed_password: str) -> bool:
        """Replace the password hash and clear any outstanding reset token."""
        table = _table_for(kind)
        with self.engine.connect() as conn:
            result = conn.execute(
                table.update()
                .where(table.c.id == principal_id)
                .values(
                    hashed_password=hashed_password,
                    reset_token_hash=None,
                    reset_token_expires=None,
                    updated_at=_now_iso(),
                )
            )
            conn.commit()
        return result.rowcount > 0

    def set_reset_token(self, kind: str, principal_id: int, token_hash: str, expires_at: str) -> None:
        table = _table_for(kind)
        with self.engine.connect() as conn:
            conn.execute(
                table.update()
                .where(table.c.id == principal_id)
                .values(reset_token_hash=token_hash, reset_token_expires=expires_at)
            )
            conn.commit()

    def find_by_reset_token(self, token_hash: str) -> User | Employer | None:
        """Return the account holding this unexpired reset token, or None."""
        now = datetime.now(timezone.utc)
        with self.engine.connect() as conn:
            for table, mapper in ((_users, _row_to_user), (_employers, _row_to_employer)):
                row = conn.execute(table.select().where(table.c.reset_token_hash == token_hash)).fetchone()
                if row is None:
                    continue
                if not row.reset_token_expires or datetime.fromisoformat(row.reset_token_expires) <= now:
                    return None
                return mapper(row)
        return None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def to_principal(account: User | Employer) -> Principal:
    """Collapse either account type into the shape authorization works with."""
    if isinstance(account, Employer):
        return Principal(
            id=account.id,
            kind=KIND_EMPLOYER,
            role=account.role,
            email=account.email,
            is_active=account.is_active,
            is_verified=account.is_verified,
        )
    return Principal(
        id=account.id,
        kind=KIND_USER,
        role=account.role,
        email=account.email,
        is_active=account.is_active,
    )


def _prepare_update(fields: dict, allowed: set[str]) -> dict:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Fields not updatable: {sorted(unknown)!r}")
    values = dict(fields)
    for flag in ("is_active", "is_verified"):
        if flag in values:
            values[flag] = 1 if values[flag] else 0
    if "skills" in values:
        values["skills"] = json.dumps(values["skills"] or [])
    values["updated_at"] = _now_iso()
    return values


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone or "",
        hashed_password=row.hashed_password,
        role=row.role,
        is_active=bool(row.is_active),
        avatar=row.avatar,
        professional_title=row.professional_title,
        location=row.location,
        skills=json.loads(row.skills) if row.skills else [],
        summary=row.summary,
        resume=row.resume,
        reset_token_hash=row.reset_token_hash,
        reset_token_expires=row.reset_token_expires,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_employer(row) -> Employer:
    return Employer(
        id=row.id,
        company_name=row.company_name,
        email=row.email,
        phone=row.phone or "",
        hashed_password=row.hashed_password,
        is_active=bool(row.is_active),
        is_verified=bool(row.is_verified),
        industry=row.industry,
        company_size=row.company_size,
        website=row.website,
        description=row.description,
        location=row.location,
        logo=row.logo,
        reset_token_hash=row.reset_token_hash,
        reset_token_expires=row.reset_token_expires,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
