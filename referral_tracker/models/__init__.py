"""
Database models package.
"""

from referral_tracker.models.user import User
from referral_tracker.models.candidate import Candidate, CandidateStatus

__all__ = ["User", "Candidate", "CandidateStatus"]
