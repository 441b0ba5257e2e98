"""
board/store.py -- SQLAlchemy-backed persistence layer for jobs and applications.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in board/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. BoardStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route handlers
never touch SQL directly.

Counters:
  views and application_count are only ever changed with a single
  "UPDATE ... SET col = col + 1" statement. The database applies the
  arithmetic, so two concurrent requests can never read the same old value
  and both write old + 1. The decrement carries "AND application_count > 0"
  in its WHERE clause so the counter never goes negative.

Uniqueness:
  UNIQUE(job_id, candidate_id) on applications backs the route-level
  duplicate check, so two concurrent submissions still produce exactly one row.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = BoardStore()                                # SQLite default
    store = BoardStore("postgresql://user:pw@host/db")  # PostgreSQL
    job_id = store.create_job(job)
    store.increment_views(job_id)
    store.close()
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine

from board.models import Application, Job, Page

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'jobboard.db'}"

# Columns a listing may be sorted by. Anything else falls back to created_at.
_SORTABLE = ("created_at", "deadline", "views", "application_count", "title")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_jobs = Table(
    "jobs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False),
    Column("company", String(255), nullable=False),
    Column("requirements", Text),  # JSON array serialized as text
    Column("responsibilities", Text),  # JSON array
    Column("category", String(50), nullable=False),
    Column("job_type", String(30), nullable=False),
    Column("location", String(255), nullable=False),
    Column("salary", String(100)),
    Column("experience", String(100)),
    Column("education", String(255)),
    Column("tags", Text),  # JSON array
    Column("image", Text),
    Column("deadline", String(32), nullable=False),
    Column("employer_id", Integer, nullable=False),
    Column("featured", Integer, nullable=False, server_default="0"),
    Column("views", Integer, nullable=False, server_default="0"),
    Column("application_count", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_jobs_category", "category"),
    Index("ix_jobs_job_type", "job_type"),
    Index("ix_jobs_location", "location"),
    Index("ix_jobs_deadline", "deadline"),
    Index("ix_jobs_employer_id", "employer_id"),
    Index("ix_jobs_created_at", "created_at"),
    Index("ix_jobs_views", "views"),
    Index("ix_jobs_category_job_type", "category", "job_type"),
    Index("ix_jobs_location_category", "location", "category"),
    Index("ix_jobs_active_deadline", "is_active", "deadline"),
)

_applications = Table(
    "applications",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("job_id", Integer, nullable=False),
    Column("candidate_id", Integer, nullable=False),
    Column("employer_id", Integer, nullable=False),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("resume", Text, nullable=False),
    Column("cover_letter", Text),
    Column("status", String(20), nullable=False, server_default="submitted"),
    Column("notes", Text),
    Column("submitted_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("job_id", "candidate_id", name="uq_application_job_candidate"),
    Index("ix_applications_candidate_id", "candidate_id"),
    Index("ix_applications_status", "status"),
    Index("ix_applications_submitted_at", "submitted_at"),
    Index("ix_applications_employer_status", "employer_id", "status"),
)

_JOB_MUTABLE = {
    "title",
    "description",
    "company",
    "requirements",
    "responsibilities",
    "category",
    "job_type",
    "location",
    "salary",
    "experience",
    "education",
    "tags",
    "image",
    "deadline",
    "featured",
    "is_active",
}
_JSON_LIST_COLUMNS = ("requirements", "responsibilities", "tags")


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class JobFilter:
    """Listing filters, AND-combined.

    keyword matches title OR description; keyword and location are
    case-insensitive substring matches; the rest are exact.
    """

    keyword: Optional[str] = None
    category: Optional[str] = None
    job_type: Optional[str] = None
    location: Optional[str] = None
    employer_id: Optional[int] = None
    featured: Optional[bool] = None
    active_only: bool = True


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BoardStore:
    """Repository for Job and Application entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def create_job(self, job: Job) -> int:
        """Insert a job. Counters always start at zero and the job starts active."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _jobs.insert().values(
                    title=job.title,
                    description=job.description,
                    company=job.company,
                    requirements=json.dumps(job.requirements),
                    responsibilities=json.dumps(job.responsibilities),
                    category=job.category,
                    job_type=job.job_type,
                    location=job.location,
                    salary=job.salary,
                    experience=job.experience,
                    education=job.education,
                    tags=json.dumps(job.tags),
                    image=job.image,
                    deadline=job.deadline,
                    employer_id=job.employer_id,
                    featured=1 if job.featured else 0,
                    views=0,
                    application_count=0,
                    is_active=1,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_job(self, job_id: int) -> Optional[Job]:
        with self.engine.connect() as conn:
            row = conn.execute(_jobs.select().where(_jobs.c.id == job_id)).fetchone()
        return _row_to_job(row) if row is not None else None

    def increment_views(self, job_id: int) -> bool:
        """Atomically add one view. Returns False if the job does not exist."""
        with self.engine.connect() as conn:
            result = conn.execute(_jobs.update().where(_jobs.c.id == job_id).values(views=_jobs.c.views + 1))
            conn.commit()
        return result.rowcount > 0

    def increment_application_count(self, job_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _jobs.update()
                .where(_jobs.c.id == job_id)
                .values(application_count=_jobs.c.application_count + 1)
            )
            conn.commit()
        return result.rowcount > 0

    def decrement_application_count(self, job_id: int) -> bool:
        """Atomically subtract one, never below zero. Returns False if nothing changed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _jobs.update()
                .where((_jobs.c.id == job_id) & (_jobs.c.application_count > 0))
                .values(application_count=_jobs.c.application_count - 1)
            )
            conn.commit()
        return result.rowcount > 0

    def list_jobs(
        self,
        filters: Optional[JobFilter] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Page:
        """Return one page of jobs matching filters plus the total match count."""
        filters = filters or JobFilter()
        conditions = []
        if filters.active_only:
            conditions.append(_jobs.c.is_active == 1)
        if filters.keyword:
            # autoescape keeps % and _ in user input literal.
            keyword = filters.keyword
            conditions.append(
                or_(
                    _jobs.c.title.icontains(keyword, autoescape=True),
                    _jobs.c.description.icontains(keyword, autoescape=True),
                )
            )
        if filters.category:
            conditions.append(_jobs.c.category == filters.category)
        if filters.job_type:
            conditions.append(_jobs.c.job_type == filters.job_type)
        if filters.location:
            conditions.append(_jobs.c.location.icontains(filters.location, autoescape=True))
        if filters.employer_id is not None:
            conditions.append(_jobs.c.employer_id == filters.employer_id)
        if filters.featured is not None:
            conditions.append(_jobs.c.featured == (1 if filters.featured else 0))

        sort_column = _jobs.c[sort_by] if sort_by in _SORTABLE else _jobs.c.created_at
        ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()

        page = max(page, 1)
        stmt = _jobs.select().where(*conditions).order_by(ordering, _jobs.c.id.desc())
        stmt = stmt.limit(limit).offset((page - 1) * limit)
        count_stmt = select(func.count()).select_from(_jobs).where(*conditions)

        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
            total = conn.execute(count_stmt).scalar() or 0
        return Page(items=[_row_to_job(r) for r in rows], total=total, page=page, limit=limit)

    def list_all_jobs(self) -> list[Job]:
        """Every job including inactive ones, newest first. Admin view."""
        with self.engine.connect() as conn:
            rows = conn.execute(_jobs.select().order_by(_jobs.c.created_at.desc(), _jobs.c.id.desc())).fetchall()
        return [_row_to_job(r) for r in rows]

    def list_jobs_by_employer(self, employer_id: int) -> list[Job]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _jobs.select()
                .where(_jobs.c.employer_id == employer_id)
                .order_by(_jobs.c.created_at.desc(), _jobs.c.id.desc())
            ).fetchall()
        return [_row_to_job(r) for r in rows]

    def update_job(self, job_id: int, **fields) -> bool:
        """Update mutable job fields. Counters and ownership are not updatable here."""
        unknown = set(fields) - _JOB_MUTABLE
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)!r}")
        values = dict(fields)
        for column in _JSON_LIST_COLUMNS:
            if column in values:
                values[column] = json.dumps(values[column] or [])
        for flag in ("featured", "is_active"):
            if flag in values:
                values[flag] = 1 if values[flag] else 0
        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_jobs.update().where(_jobs.c.id == job_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_job(self, job_id: int) -> bool:
        """Hard-delete a job together with its applications."""
        with self.engine.connect() as conn:
            conn.execute(_applications.delete().where(_applications.c.job_id == job_id))
            result = conn.execute(_jobs.delete().where(_jobs.c.id == job_id))
            conn.commit()
        return result.rowcount > 0

    def deactivate_jobs_for_employer(self, employer_id: int) -> int:
        """Soft-delete every job of an employer. Returns the number of jobs changed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _jobs.update()
                .where((_jobs.c.employer_id == employer_id) & (_jobs.c.is_active == 1))
                .values(is_active=0, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount

    def active_job_counts_by_employer(self) -> dict[int, int]:
        """Map employer_id -> number of active jobs, for employers with at least one."""
        stmt = (
            select(_jobs.c.employer_id, func.count().label("n"))
            .where(_jobs.c.is_active == 1)
            .group_by(_jobs.c.employer_id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return {r.employer_id: r.n for r in rows}

    def count_jobs(self, active: Optional[bool] = None) -> int:
        stmt = select(func.count()).select_from(_jobs)
        if active is not None:
            stmt = stmt.where(_jobs.c.is_active == (1 if active else 0))
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def create_application(self, application: Application) -> int:
        """Insert an application and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the candidate already applied
        to this job. Callers treat that as the duplicate-application conflict.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _applications.insert().values(
                    job_id=application.job_id,
                    candidate_id=application.candidate_id,
                    employer_id=application.employer_id,
                    name=application.name,
                    email=application.email,
                    resume=application.resume,
                    cover_letter=application.cover_letter,
                    status=application.status,
                    notes=application.notes,
                    submitted_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_application(self, application_id: int) -> Optional[Application]:
        with self.engine.connect() as conn:
            row = conn.execute(_applications.select().where(_applications.c.id == application_id)).fetchone()
        return _row_to_application(row) if row is not None else None

    def find_application(self, job_id: int, candidate_id: int) -> Optional[Application]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _applications.select().where(
                    (_applications.c.job_id == job_id) & (_applications.c.candidate_id == candidate_id)
                )
            ).fetchone()
        return _row_to_application(row) if row is not None else None

    def list_applications(
        self,
        job_id: Optional[int] = None,
        candidate_id: Optional[int] = None,
        employer_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Application]:
        """Return applications matching every supplied filter, newest first."""
        stmt = _applications.select()
        if job_id is not None:
            stmt = stmt.where(_applications.c.job_id == job_id)
        if candidate_id is not None:
            stmt = stmt.where(_applications.c.candidate_id == candidate_id)
        if employer_id is not None:
            stmt = stmt.where(_applications.c.employer_id == employer_id)
        if status is not None:
            stmt = stmt.where(_applications.c.status == status)
        stmt = stmt.order_by(_applications.c.submitted_at.desc(), _applications.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_application(r) for r in rows]

    def update_application_status(self, application_id: int, status: str, notes: Optional[str] = None) -> bool:
        values: dict = {"status": status, "updated_at": _now_iso()}
        if notes is not None:
            values["notes"] = notes
        with self.engine.connect() as conn:
            result = conn.execute(
                _applications.update().where(_applications.c.id == application_id).values(**values)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_application(self, application_id: int) -> Optional[Application]:
        """Delete an application and return the removed record (None if absent).

        The parent job's counter is NOT touched here; callers follow up with
        decrement_application_count(). The two writes are independent.
        """
        existing = self.get_application(application_id)
        if existing is None:
            return None
        with self.engine.connect() as conn:
            result = conn.execute(_applications.delete().where(_applications.c.id == application_id))
            conn.commit()
        return existing if result.rowcount > 0 else None

    def delete_applications_for_candidate(self, candidate_id: int) -> int:
        """Remove every application of a candidate, decrementing each parent job."""
        removed = 0
        for application in self.list_applications(candidate_id=candidate_id):
            if self.delete_application(application.id) is not None:
                self.decrement_application_count(application.job_id)
                removed += 1
        return removed

    def count_applications(self, status: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(_applications)
        if status is not None:
            stmt = stmt.where(_applications.c.status == status)
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    def application_status_counts(self) -> dict[str, int]:
        stmt = select(_applications.c.status, func.count().label("n")).group_by(_applications.c.status)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return {r.status: r.n for r in rows}

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _json_list(value: Optional[str]) -> list[str]:
    return json.loads(value) if value else []


def _row_to_job(row) -> Job:
    return Job(
        id=row.id,
        title=row.title,
        description=row.description,
        company=row.company,
        requirements=_json_list(row.requirements),
        responsibilities=_json_list(row.responsibilities),
        category=row.category,
        job_type=row.job_type,
        location=row.location,
        salary=row.salary,
        experience=row.experience,
        education=row.education,
        tags=_json_list(row.tags),
        image=row.image,
        deadline=row.deadline,
        employer_id=row.employer_id,
        featured=bool(row.featured),
        views=row.views,
        application_count=row.application_count,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_application(row) -> Application:
    return Application(
        id=row.id,
        job_id=row.job_id,
        candidate_id=row.candidate_id,
        employer_id=row.employer_id,
        name=row.name,
        email=row.email,
        resume=row.resume,
        cover_letter=row.cover_letter,
        status=row.status,
        notes=row.notes,
        submitted_at=row.submitted_at,
        updated_at=row.updated_at,
    )
