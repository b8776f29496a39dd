"""
Repository for Candidate records.

CandidateRepository is the persistence contract the service depends on;
SQLAlchemyCandidateRepository is the reference backing. Email uniqueness is
enforced by the database's unique index, so a raced duplicate insert surfaces
here as ConflictError instead of a second record.
"""

import logging
import uuid
from typing import Dict, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from referral_tracker.core.errors import ConflictError, ValidationError
from referral_tracker.crud.query_builder import CandidateQuery
from referral_tracker.models.candidate import EMAIL_UNIQUE_INDEX, REFERRER_FOREIGN_KEY, Candidate, CandidateStatus
from referral_tracker.models.user import User

logger = logging.getLogger(__name__)

CandidateId = Union[uuid.UUID, str]

DUPLICATE_EMAIL_MESSAGE = "Candidate with this email already exists"
UNKNOWN_REFERRER_ERROR = {"field": "referred_by", "message": "Referrer does not exist"}


def parse_id(candidate_id: CandidateId) -> Optional[uuid.UUID]:
    """Coerce an id to UUID, returning None for malformed values."""
    if isinstance(candidate_id, uuid.UUID):
        return candidate_id
    try:
        return uuid.UUID(str(candidate_id))
    except (ValueError, TypeError, AttributeError):
        return None


def _violated_constraint(error: IntegrityError) -> Optional[str]:
    """
    Name the constraint behind an IntegrityError, as far as the driver tells us.

    psycopg2 reports the constraint name directly; SQLite only has a message.
    """
    diag = getattr(error.orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name

    message = str(error.orig)
    if "UNIQUE constraint failed: candidates.email" in message:
        return EMAIL_UNIQUE_INDEX
    if "FOREIGN KEY constraint failed" in message:
        return REFERRER_FOREIGN_KEY
    return None


class CandidateRepository:
    """Persistence contract for candidate records"""

    def add(self, candidate: Candidate) -> Candidate:
        """Insert a new candidate. Raises ConflictError on duplicate email."""
        raise NotImplementedError

    def get(self, candidate_id: CandidateId) -> Optional[Candidate]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[Candidate]:
        """Look up by already-normalized email"""
        raise NotImplementedError

    def list(self, query: CandidateQuery) -> List[Candidate]:
        raise NotImplementedError

    def save(self, candidate: Candidate) -> Candidate:
        """Persist changes to an existing candidate"""
        raise NotImplementedError

    def delete(self, candidate: Candidate) -> None:
        raise NotImplementedError

    def count_by_status(self) -> Dict[CandidateStatus, int]:
        """Count candidates per status; every status is present in the result"""
        raise NotImplementedError

    def referrer_exists(self, user_id: uuid.UUID) -> bool:
        raise NotImplementedError


class SQLAlchemyCandidateRepository(CandidateRepository):
    """
    SQLAlchemy-backed repository bound to one session.

    Args:
        db: Database session (one per request or unit of work)
    """

    def __init__(self, db: Session):
        self.db = db

    def add(self, candidate: Candidate) -> Candidate:
        self.db.add(candidate)
        self._commit()
        self.db.refresh(candidate)
        return candidate

    def get(self, candidate_id: CandidateId) -> Optional[Candidate]:
        parsed = parse_id(candidate_id)
        if parsed is None:
            return None
        return self.db.query(Candidate).filter(Candidate.id == parsed).first()

    def get_by_email(self, email: str) -> Optional[Candidate]:
        return self.db.query(Candidate).filter(Candidate.email == email).first()

    def list(self, query: CandidateQuery) -> List[Candidate]:
        return (
            self.db.query(Candidate)
            .filter(query.predicate)
            .order_by(*query.order_by)
            .all()
        )

    def save(self, candidate: Candidate) -> Candidate:
        self._commit()
        self.db.refresh(candidate)
        return candidate

    def delete(self, candidate: Candidate) -> None:
        self.db.delete(candidate)
        self.db.commit()

    def count_by_status(self) -> Dict[CandidateStatus, int]:
        # One grouped query so the per-status counts come from the same snapshot
        rows = (
            self.db.query(Candidate.status, func.count(Candidate.id))
            .group_by(Candidate.status)
            .all()
        )
        counts = {status: 0 for status in CandidateStatus}
        for status, count in rows:
            counts[CandidateStatus(status)] = count
        return counts

    def referrer_exists(self, user_id: uuid.UUID) -> bool:
        return self.db.query(User.id).filter(User.id == user_id).first() is not None

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            violated = _violated_constraint(e)
            if violated == EMAIL_UNIQUE_INDEX:
                logger.info("Rejected duplicate candidate email")
                raise ConflictError(DUPLICATE_EMAIL_MESSAGE) from e
            if violated == REFERRER_FOREIGN_KEY:
                logger.info("Rejected candidate pointing at a missing referrer")
                raise ValidationError([dict(UNKNOWN_REFERRER_ERROR)]) from e
            logger.error(f"Unexpected integrity error on candidates: {e.orig}")
            raise
