"""
Candidate referral service.

Orchestrates referral intake, edits, status changes and deletion across the
candidate repository and the attachment store, enforcing the rules neither
layer can enforce alone:

- Attachments are stored only after the email uniqueness check passes.
- A record never points at an attachment that failed to persist.
- Replacing a resume stores the new file before the old one is deleted.
- Deleting a candidate never gets stuck on a missing attachment.
"""

import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from referral_tracker.core.errors import ConflictError, NotFoundError, StorageError, ValidationError
from referral_tracker.core.logging_config import get_logger
from referral_tracker.core.storage import AttachmentHandle, StorageBackend, StoredAttachment
from referral_tracker.crud.candidate import (
    DUPLICATE_EMAIL_MESSAGE,
    UNKNOWN_REFERRER_ERROR,
    CandidateId,
    CandidateRepository,
    parse_id,
)
from referral_tracker.crud.query_builder import build_filter, parse_status
from referral_tracker.models.candidate import Candidate, CandidateStatus
from referral_tracker.schemas.candidate import CandidateCreate, CandidateUpdate

logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"
DEFAULT_MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024
DEFAULT_RESUME_FILENAME = "resume.pdf"


@dataclass(frozen=True)
class AttachmentUpload:
    """Resume bytes as received from the caller, not yet validated."""
    content: bytes
    filename: Optional[str] = DEFAULT_RESUME_FILENAME
    mime_type: Optional[str] = PDF_MIME_TYPE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pydantic_errors(exc: PydanticValidationError) -> List[Dict[str, str]]:
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": field, "message": message})
    return errors


class CandidateService:
    """
    Referral record manager.

    Args:
        repository: Candidate persistence
        storage: Attachment store for resumes
        max_attachment_bytes: Largest accepted resume
    """

    def __init__(
        self,
        repository: CandidateRepository,
        storage: StorageBackend,
        max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES
    ):
        self.repository = repository
        self.storage = storage
        self.max_attachment_bytes = max_attachment_bytes

    # Reads

    def get(self, candidate_id: CandidateId) -> Candidate:
        candidate = self.repository.get(candidate_id)
        if candidate is None:
            raise NotFoundError("Candidate not found")
        return candidate

    def list(
        self,
        status: Optional[str] = None,
        job_title: Optional[str] = None,
        search: Optional[str] = None
    ) -> List[Candidate]:
        """List candidates matching the filters, newest referral first."""
        return self.repository.list(build_filter(status=status, job_title=job_title, search=search))

    def get_attachment(self, candidate_id: CandidateId) -> StoredAttachment:
        candidate = self.get(candidate_id)
        handle = candidate.attachment
        if handle is None:
            raise NotFoundError("No resume found for this candidate")
        return self.storage.retrieve(handle)

    def get_stats(self) -> Dict[str, Any]:
        """
        Count candidates overall and per status.

        The total is derived from the same grouped counts, so
        pending + reviewed + hired + rejected == total always holds.
        """
        counts = self.repository.count_by_status()
        by_status = {status.value.lower(): counts.get(status, 0) for status in CandidateStatus}
        return {"total": sum(by_status.values()), "by_status": by_status}

    # Writes

    def create(
        self,
        data: Union[CandidateCreate, Mapping[str, Any]],
        referrer_id: Optional[CandidateId] = None,
        attachment: Optional[AttachmentUpload] = None
    ) -> Candidate:
        """
        Create a referral.

        Args:
            data: Candidate fields (name, email, phone, job_title, notes)
            referrer_id: Authenticated referrer identity, if any. Never read from ``data``.
            attachment: Optional PDF resume

        Returns:
            The persisted candidate with status Pending

        Raises:
            ValidationError: Listing every invalid field
            ConflictError: A candidate with this email already exists
            StorageError: The resume could not be stored; nothing was created
        """
        errors: List[Dict[str, str]] = []
        payload = None
        if isinstance(data, CandidateCreate):
            payload = data
        else:
            try:
                payload = CandidateCreate.model_validate(data)
            except PydanticValidationError as e:
                errors.extend(_pydantic_errors(e))

        referrer_uuid = None
        if referrer_id is not None:
            referrer_uuid = parse_id(referrer_id)
            if referrer_uuid is None:
                errors.append({"field": "referred_by", "message": "Invalid referrer identity"})
            elif not self.repository.referrer_exists(referrer_uuid):
                errors.append(dict(UNKNOWN_REFERRER_ERROR))

        errors.extend(self._attachment_errors(attachment))
        if errors:
            raise ValidationError(errors)

        if self.repository.get_by_email(payload.email) is not None:
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

        now = _utcnow()
        candidate = Candidate(
            id=uuid.uuid4(),
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            job_title=payload.job_title,
            notes=payload.notes,
            status=CandidateStatus.PENDING,
            referred_by_id=referrer_uuid,
            created_at=now,
            updated_at=now,
        )

        # Only after the uniqueness check, so a rejected referral leaves no file behind
        handle = self._store_attachment(candidate.id, attachment) if attachment else None
        candidate.attachment = handle

        try:
            candidate = self.repository.add(candidate)
        except Exception:
            # Lost an insert race or the database failed; don't orphan the file
            if handle is not None:
                self._discard(handle)
            raise

        logger.info(f"Created candidate {candidate.id} (referred_by={referrer_uuid}, resume={handle is not None})")
        return candidate

    def update(
        self,
        candidate_id: CandidateId,
        changes: Union[CandidateUpdate, Mapping[str, Any], None] = None,
        attachment: Optional[AttachmentUpload] = None
    ) -> Candidate:
        """
        Apply a partial edit.

        Only fields present in ``changes`` are touched; an explicit empty
        ``notes`` clears the notes. Email uniqueness is not re-checked here
        beyond what the database's unique index enforces.
        """
        candidate = self.get(candidate_id)

        errors: List[Dict[str, str]] = []
        update = None
        if isinstance(changes, CandidateUpdate):
            update = changes
        else:
            try:
                update = CandidateUpdate.model_validate(dict(changes or {}))
            except PydanticValidationError as e:
                errors.extend(_pydantic_errors(e))

        errors.extend(self._attachment_errors(attachment))
        if errors:
            raise ValidationError(errors)

        fields = update.changes()

        # New file is durable before the record points at it
        new_handle = self._store_attachment(candidate.id, attachment) if attachment else None
        old_handle = candidate.attachment

        for field, value in fields.items():
            setattr(candidate, field, value)
        if new_handle is not None:
            candidate.attachment = new_handle
        candidate.updated_at = _utcnow()

        try:
            candidate = self.repository.save(candidate)
        except Exception:
            if new_handle is not None:
                self._discard(new_handle)
            raise

        # Old file goes only once nothing references it
        if new_handle is not None and old_handle is not None:
            self._discard(old_handle)

        logger.info(f"Updated candidate {candidate.id}: fields={sorted(fields)} resume_replaced={new_handle is not None}")
        return candidate

    def set_status(self, candidate_id: CandidateId, status: Union[CandidateStatus, str, None]) -> Candidate:
        """
        Move a candidate to any of the four statuses.

        There is no transition graph: every status is reachable from every other.
        """
        new_status = status if isinstance(status, CandidateStatus) else parse_status(status)
        if new_status is None:
            raise ValidationError(
                [{"field": "status", "message": f"{status} is not a valid status"}]
            )

        candidate = self.get(candidate_id)
        previous = candidate.status
        candidate.status = new_status
        candidate.updated_at = _utcnow()
        candidate = self.repository.save(candidate)

        logger.info(f"Candidate {candidate.id} status {previous.value} -> {new_status.value}")
        return candidate

    def delete(self, candidate_id: CandidateId) -> None:
        """
        Delete a candidate and its resume.

        A failed attachment delete is logged and ignored: a dangling file is
        garbage that can be collected later, a stuck record is not.
        """
        candidate = self.get(candidate_id)
        handle = candidate.attachment
        if handle is not None:
            try:
                self.storage.delete(handle)
            except (StorageError, NotFoundError) as e:
                logger.warning(f"Could not delete resume of candidate {candidate.id}: {e.message}")

        self.repository.delete(candidate)
        logger.info(f"Deleted candidate {candidate.id}")

    # Helpers

    def _attachment_errors(self, attachment: Optional[AttachmentUpload]) -> List[Dict[str, str]]:
        if attachment is None:
            return []
        content = attachment.content or b""
        if not content:
            return [{"field": "resume", "message": "Resume file is empty"}]
        if len(content) > self.max_attachment_bytes:
            limit_mb = self.max_attachment_bytes / (1024 * 1024)
            return [{"field": "resume", "message": f"Resume exceeds the {limit_mb:g} MB limit"}]
        if attachment.mime_type and attachment.mime_type != PDF_MIME_TYPE:
            return [{"field": "resume", "message": "Only PDF files are allowed"}]
        if not content.startswith(PDF_MAGIC):
            return [{"field": "resume", "message": "Only PDF files are allowed"}]
        return []

    def _store_attachment(self, candidate_id: uuid.UUID, attachment: AttachmentUpload) -> AttachmentHandle:
        filename = os.path.basename(attachment.filename or "") or DEFAULT_RESUME_FILENAME
        return self.storage.store(candidate_id, attachment.content, filename, PDF_MIME_TYPE)

    def _discard(self, handle: AttachmentHandle) -> None:
        try:
            self.storage.delete(handle)
        except (StorageError, NotFoundError) as e:
            logger.error(f"Failed to clean up attachment {handle.locator}: {e.message}")
