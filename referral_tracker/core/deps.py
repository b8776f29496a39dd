"""
FastAPI dependencies for wiring the service layer and the optional referrer.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from referral_tracker.core.config import settings
from referral_tracker.core.database import get_db
from referral_tracker.core.errors import RateLimitError
from referral_tracker.core.rate_limiter import RateLimiter, get_client_ip
from referral_tracker.core.security import get_subject
from referral_tracker.core.storage import StorageBackend
from referral_tracker.crud.candidate import SQLAlchemyCandidateRepository, parse_id
from referral_tracker.models.user import User
from referral_tracker.services.candidate_service import CandidateService

logger = logging.getLogger(__name__)

# Referrals may be anonymous, so a missing header is not an error
optional_bearer = HTTPBearer(auto_error=False)


def get_storage(request: Request) -> StorageBackend:
    """Attachment store created during application startup."""
    return request.app.state.storage


def enforce_api_rate_limit(request: Request) -> None:
    """
    Count the request against its client IP.

    Raises:
        RateLimitError: 429 once the IP used up its window
    """
    limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return

    client_ip = get_client_ip(request)
    try:
        limiter.check(f"ip:{client_ip}:api")
    except RateLimitError:
        logger.warning(f"Rate limit exceeded for IP {client_ip} on {request.url.path}")
        raise


def get_candidate_service(
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage)
) -> CandidateService:
    return CandidateService(
        repository=SQLAlchemyCandidateRepository(db),
        storage=storage,
        max_attachment_bytes=settings.MAX_ATTACHMENT_BYTES,
    )


def get_optional_referrer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Resolve the referring employee from a Bearer token, if one was sent.

    Invalid, expired or unknown-user tokens yield None: the referral is then
    recorded without a referrer rather than rejected.
    """
    if not credentials:
        return None

    user_id = parse_id(get_subject(credentials.credentials))
    if user_id is None:
        logger.info("Ignoring unusable bearer token on referral request")
        return None

    user = db.query(User).filter(User.id == user_id).first()
    return user if user and user.is_active else None
