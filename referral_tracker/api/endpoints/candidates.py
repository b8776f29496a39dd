"""
API endpoints for candidate referrals.

Handles referral intake, listing/search, stats, resume download,
edits, status changes and deletion.
"""

import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from referral_tracker.core.deps import get_candidate_service, get_optional_referrer
from referral_tracker.core.errors import ValidationError
from referral_tracker.models.user import User
from referral_tracker.schemas.candidate import (
    UPDATABLE_FIELDS,
    CandidateEnvelope,
    CandidateListEnvelope,
    CandidateResponse,
    CandidateStatusUpdate,
    MessageResponse,
    StatsEnvelope,
)
from referral_tracker.services.candidate_service import AttachmentUpload, CandidateService

router = APIRouter(prefix="/candidates", tags=["Candidates"])
logger = logging.getLogger(__name__)

RESUME_FIELD = "resume"
DEFAULT_DOWNLOAD_NAME = "resume.pdf"


def _content_disposition(filename: str) -> str:
    """
    Build an inline Content-Disposition header value.

    Header values must be latin-1, so non-ASCII names go in an RFC 5987
    ``filename*`` parameter next to an ASCII fallback.
    """
    filename = filename.replace("\r", "").replace("\n", "")
    fallback = filename.encode("ascii", "ignore").decode("ascii").replace('"', "").replace("\\", "")
    # "简历.pdf" leaves only ".pdf"
    if not fallback.strip() or fallback.startswith("."):
        fallback = DEFAULT_DOWNLOAD_NAME

    value = f'inline; filename="{fallback}"'
    if fallback != filename:
        value += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return value


async def _read_submission(request: Request) -> Tuple[Dict[str, Any], Optional[AttachmentUpload]]:
    """
    Read candidate fields and an optional resume from a multipart form or JSON body.

    Only keys actually present in the request are returned, so callers can
    tell an explicitly empty field from a missing one.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError([{"field": "body", "message": "Request body is not valid JSON"}])
        if not isinstance(body, dict):
            raise ValidationError([{"field": "body", "message": "Request body must be an object"}])
        return {k: body[k] for k in UPDATABLE_FIELDS if k in body}, None

    form = await request.form()
    fields = {k: form[k] for k in UPDATABLE_FIELDS if k in form and isinstance(form[k], str)}

    attachment = None
    upload = form.get(RESUME_FIELD)
    if isinstance(upload, UploadFile):
        content = await upload.read()
        # Browsers send an empty part when no file was chosen
        if content or upload.filename:
            attachment = AttachmentUpload(
                content=content,
                filename=upload.filename,
                mime_type=upload.content_type,
            )
    return fields, attachment


@router.get("/", response_model=CandidateListEnvelope)
def list_candidates(
    status: Optional[str] = None,
    job_title: Optional[str] = None,
    search: Optional[str] = None,
    service: CandidateService = Depends(get_candidate_service)
):
    """
    List referrals, newest first.

    Args:
        status: Pending, Reviewed, Hired, Rejected or "all"
        job_title: Case-insensitive job title substring
        search: Case-insensitive substring of name, email or job title
    """
    candidates = service.list(status=status, job_title=job_title, search=search)
    data = [CandidateResponse.model_validate(c) for c in candidates]
    return CandidateListEnvelope(count=len(data), data=data)


@router.get("/stats", response_model=StatsEnvelope)
def get_stats(service: CandidateService = Depends(get_candidate_service)):
    """Total referrals and a breakdown by status."""
    return StatsEnvelope(data=service.get_stats())


@router.get("/{candidate_id}", response_model=CandidateEnvelope)
def get_candidate(candidate_id: str, service: CandidateService = Depends(get_candidate_service)):
    candidate = service.get(candidate_id)
    return CandidateEnvelope(data=CandidateResponse.model_validate(candidate))


@router.get("/{candidate_id}/resume")
def get_candidate_resume(candidate_id: str, service: CandidateService = Depends(get_candidate_service)):
    """
    Serve a candidate's resume inline.

    Raises:
        NotFoundError: If the candidate or their resume doesn't exist
    """
    stored = service.get_attachment(candidate_id)
    return Response(
        content=stored.content,
        media_type=stored.mime_type,
        headers={"Content-Disposition": _content_disposition(stored.filename or DEFAULT_DOWNLOAD_NAME)}
    )


@router.post("/", status_code=201, response_model=CandidateEnvelope)
async def create_candidate(
    request: Request,
    referrer: Optional[User] = Depends(get_optional_referrer),
    service: CandidateService = Depends(get_candidate_service)
):
    """
    Submit a referral.

    Accepts multipart form data (name, email, phone, job_title, notes and an
    optional PDF ``resume``) or a JSON body without a resume. The referrer is
    taken from the Bearer token only; body fields cannot set it.
    """
    fields, attachment = await _read_submission(request)
    candidate = await run_in_threadpool(
        service.create,
        fields,
        referrer.id if referrer else None,
        attachment,
    )
    return CandidateEnvelope(
        message="Candidate created successfully",
        data=CandidateResponse.model_validate(candidate)
    )


@router.put("/{candidate_id}/status", response_model=CandidateEnvelope)
def update_candidate_status(
    candidate_id: str,
    body: CandidateStatusUpdate,
    service: CandidateService = Depends(get_candidate_service)
):
    candidate = service.set_status(candidate_id, body.status)
    return CandidateEnvelope(
        message="Status updated successfully",
        data=CandidateResponse.model_validate(candidate)
    )


@router.put("/{candidate_id}", response_model=CandidateEnvelope)
async def update_candidate(
    candidate_id: str,
    request: Request,
    service: CandidateService = Depends(get_candidate_service)
):
    """
    Edit any subset of name, email, phone, job_title, notes and optionally
    replace the resume. Fields not sent are left unchanged.
    """
    fields, attachment = await _read_submission(request)
    candidate = await run_in_threadpool(service.update, candidate_id, fields, attachment)
    return CandidateEnvelope(
        message="Candidate updated successfully",
        data=CandidateResponse.model_validate(candidate)
    )


@router.delete("/{candidate_id}", response_model=MessageResponse)
def delete_candidate(candidate_id: str, service: CandidateService = Depends(get_candidate_service)):
    service.delete(candidate_id)
    return MessageResponse(message="Candidate deleted successfully")
