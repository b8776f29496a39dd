"""
Candidate database model.

Represents a job candidate referred by an employee. The record keeps a
lightweight handle to the stored resume (never the bytes themselves) so
listing and searching candidates never pays for attachment payloads.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, String, Text, Integer, DateTime, Enum, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from referral_tracker.core.database import Base
from referral_tracker.core.storage import AttachmentHandle


# Constraint names are shared with the migrations and used to classify IntegrityErrors
EMAIL_UNIQUE_INDEX = "ix_candidates_email"
REFERRER_FOREIGN_KEY = "fk_candidates_referred_by_id_users"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CandidateStatus(str, enum.Enum):
    """
    Referral review status.

    The model is flat: any status may move to any other status.
    """
    PENDING = "Pending"
    REVIEWED = "Reviewed"
    HIRED = "Hired"
    REJECTED = "Rejected"


class Candidate(Base):
    """
    A referred candidate.

    Email is unique at the storage layer so concurrent referrals of the same
    person cannot both be inserted.
    """
    __tablename__ = "candidates"
    __table_args__ = (
        Index(EMAIL_UNIQUE_INDEX, "email", unique=True),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)

    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    job_title = Column(String(100), nullable=False, index=True)

    status = Column(
        Enum(
            CandidateStatus,
            name="candidate_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=CandidateStatus.PENDING,
        nullable=False,
        index=True
    )
    notes = Column(Text, nullable=False, default="")

    # Weak reference: the user's lifecycle is not owned by the candidate
    referred_by_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL", name=REFERRER_FOREIGN_KEY),
        nullable=True,
        index=True
    )

    # Attachment handle (all four set or all null)
    attachment_locator = Column(String(512), nullable=True)
    attachment_filename = Column(String(255), nullable=True)
    attachment_mime_type = Column(String(100), nullable=True)
    attachment_size = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    referred_by = relationship("User", lazy="joined")

    @property
    def attachment(self) -> Optional[AttachmentHandle]:
        if not self.attachment_locator:
            return None
        return AttachmentHandle(
            locator=self.attachment_locator,
            original_filename=self.attachment_filename,
            mime_type=self.attachment_mime_type,
            size=self.attachment_size or 0,
        )

    @attachment.setter
    def attachment(self, handle: Optional[AttachmentHandle]) -> None:
        if handle is None:
            self.attachment_locator = None
            self.attachment_filename = None
            self.attachment_mime_type = None
            self.attachment_size = None
        else:
            self.attachment_locator = handle.locator
            self.attachment_filename = handle.original_filename
            self.attachment_mime_type = handle.mime_type
            self.attachment_size = handle.size

    @property
    def has_resume(self) -> bool:
        return self.attachment_locator is not None

    def __repr__(self):
        return f"<Candidate(id={self.id}, email='{self.email}', status={self.status.value})>"
