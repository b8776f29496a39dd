"""
Pydantic schemas for Candidate API requests/responses.
"""

import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from referral_tracker.models.candidate import CandidateStatus

# Accepts +1234567890, 123-456-7890, (123) 456-7890, +1-555-0100, ...
PHONE_PATTERN = re.compile(r"^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,9}$")

UPDATABLE_FIELDS = ("name", "email", "phone", "job_title", "notes")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _check_phone(value: Optional[str]) -> Optional[str]:
    if value is not None and not PHONE_PATTERN.match(value):
        raise ValueError("Please provide a valid phone number")
    return value


class CandidateCreate(BaseModel):
    """Validated referral submission."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    job_title: str = Field(..., min_length=2, max_length=100)
    notes: str = Field("", max_length=1000)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return _strip(v)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("notes", mode="before")
    @classmethod
    def default_notes(cls, v):
        return "" if v is None else v


class CandidateUpdate(BaseModel):
    """
    Partial candidate edit.

    Only fields present in the input are applied; use ``model_fields_set`` to
    tell an explicit empty ``notes`` (clears notes) from an absent one.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=1)
    job_title: Optional[str] = Field(None, min_length=2, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return _strip(v)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v is not None else v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)

    def changes(self) -> dict:
        """Fields explicitly supplied, with ``None`` meaning absent except for notes."""
        result = {}
        for field in UPDATABLE_FIELDS:
            if field not in self.model_fields_set:
                continue
            value = getattr(self, field)
            if value is None:
                if field == "notes":
                    result[field] = ""
                continue
            result[field] = value
        return result


class CandidateStatusUpdate(BaseModel):
    """Request body for a status change. The value is checked by the service."""
    status: str


class ReferrerResponse(BaseModel):
    """Employee who submitted the referral."""
    id: UUID
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class CandidateResponse(BaseModel):
    """Candidate as returned by the API. Never includes resume bytes."""
    id: UUID
    name: str
    email: str
    phone: str
    job_title: str
    status: CandidateStatus
    notes: str
    referred_by: Optional[ReferrerResponse] = None
    has_resume: bool = False
    resume_filename: Optional[str] = Field(None, validation_alias="attachment_filename")
    resume_mime_type: Optional[str] = Field(None, validation_alias="attachment_mime_type")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CandidateEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: CandidateResponse


class CandidateListEnvelope(BaseModel):
    success: bool = True
    count: int
    data: List[CandidateResponse]


class StatusCounts(BaseModel):
    pending: int = 0
    reviewed: int = 0
    hired: int = 0
    rejected: int = 0


class CandidateStats(BaseModel):
    total: int
    by_status: StatusCounts


class StatsEnvelope(BaseModel):
    success: bool = True
    data: CandidateStats


class MessageResponse(BaseModel):
    success: bool = True
    message: str
