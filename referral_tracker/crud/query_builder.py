"""
Translates list filters into a repository-level predicate.

Filters are advisory: an unrecognized status simply matches nothing rather
than being rejected. Results are always ordered newest referral first.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from sqlalchemy import and_, false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from referral_tracker.models.candidate import Candidate, CandidateStatus

ALL_STATUSES = "all"

# Newest first is part of the list contract; id keeps ties stable
DEFAULT_ORDERING = (Candidate.created_at.desc(), Candidate.id.desc())


@dataclass
class CandidateQuery:
    """A predicate plus the ordering every list result must follow."""
    predicate: ColumnElement = field(default_factory=true)
    order_by: Tuple = DEFAULT_ORDERING


def _contains(column, term: str) -> ColumnElement:
    # Literal, case-insensitive substring match
    return column.icontains(term, autoescape=True)


def parse_status(value: Optional[str]) -> Optional[CandidateStatus]:
    """Return the matching status, or None when the value is not one of them."""
    try:
        return CandidateStatus(value)
    except ValueError:
        return None


def build_filter(
    status: Optional[str] = None,
    job_title: Optional[str] = None,
    search: Optional[str] = None
) -> CandidateQuery:
    """
    Build the list predicate.

    Args:
        status: Exact status value; absent, blank or "all" means no constraint
        job_title: Case-insensitive substring of the job title
        search: Case-insensitive substring of name, email or job title

    Returns:
        CandidateQuery with every supplied constraint combined with AND
    """
    clauses = []

    status = status.strip() if status else None
    if status and status.lower() != ALL_STATUSES:
        parsed = parse_status(status)
        clauses.append(Candidate.status == parsed if parsed else false())

    job_title = job_title.strip() if job_title else None
    if job_title:
        clauses.append(_contains(Candidate.job_title, job_title))

    search = search.strip() if search else None
    if search:
        clauses.append(or_(
            _contains(Candidate.name, search),
            _contains(Candidate.email, search),
            _contains(Candidate.job_title, search),
        ))

    if not clauses:
        return CandidateQuery()
    return CandidateQuery(predicate=and_(*clauses))
