"""
board/models.py -- Domain dataclasses for job postings and applications.

These are pure data containers with zero logic. Counter maintenance, filtering,
and uniqueness rules live in board/store.py.

Separation of concerns: these dataclasses are the board's domain truth, just as
auth/models.py is the account layer's. Neither layer imports the other; the
link between them is the integer employer_id / candidate_id.
"""

from dataclasses import dataclass, field
from typing import Optional

JOB_CATEGORIES = (
    "Technology",
    "Healthcare",
    "Finance",
    "Education",
    "Marketing",
    "Sales",
    "Engineering",
    "Other",
)

JOB_TYPES = ("Full-time", "Part-time", "Contract", "Internship", "Remote")

APPLICATION_STATUSES = ("submitted", "reviewed", "shortlisted", "rejected", "hired")


@dataclass
class Job:
    """A job posting owned by one employer.

    views and application_count are maintained only through the store's
    atomic increment methods; a Job instance carries a snapshot.

    id is None before the record is written to the database.
    """

    title: str
    description: str
    company: str
    category: str
    job_type: str
    location: str
    deadline: str  # ISO 8601
    employer_id: int
    requirements: list[str] = field(default_factory=list)
    responsibilities: list[str] = field(default_factory=list)
    salary: Optional[str] = None
    experience: Optional[str] = None
    education: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    image: Optional[str] = None
    featured: bool = False
    views: int = 0
    application_count: int = 0
    is_active: bool = True
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Application:
    """A candidate's application to one job.

    employer_id is copied from the job at submission so employer-side listings
    do not need a join. (job_id, candidate_id) is unique.

    id is None before the record is written to the database.
    """

    job_id: int
    candidate_id: int
    employer_id: int
    name: str
    email: str
    resume: str
    cover_letter: Optional[str] = None
    status: str = "submitted"
    notes: Optional[str] = None
    id: Optional[int] = None
    submitted_at: str = ""
    updated_at: str = ""


@dataclass
class Page:
    """One page of a listing plus the totals needed to render pagination."""

    items: list
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0
