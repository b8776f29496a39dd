"""
Data access layer.

Keeps persistence details out of the service and API layers,
following the Repository pattern.
"""

from referral_tracker.crud.candidate import CandidateRepository, SQLAlchemyCandidateRepository
from referral_tracker.crud.query_builder import CandidateQuery, build_filter

__all__ = ["CandidateRepository", "SQLAlchemyCandidateRepository", "CandidateQuery", "build_filter"]
