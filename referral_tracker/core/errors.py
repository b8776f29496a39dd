"""
Error taxonomy shared by the service, storage and API layers.

Every error carries a stable machine-readable ``kind`` and a human-readable
message. Messages are safe to return to callers; internal details (paths,
bucket keys, driver errors) belong in the logs only.
"""

from typing import Any, Dict, List, Optional


class ReferralError(Exception):
    """Base application exception."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(ReferralError):
    """Raised when input is malformed, missing or out of range.

    ``errors`` lists every violated field, not just the first one.
    """

    kind = "validation_error"

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        if message is None:
            fields = ", ".join(error["field"] for error in errors)
            message = f"Invalid value for: {fields}" if fields else "Invalid input"
        super().__init__(message)
        self.errors = errors

    @property
    def fields(self) -> List[str]:
        return [error["field"] for error in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class ConflictError(ReferralError):
    """Raised when a candidate with the same email already exists."""

    kind = "conflict"


class NotFoundError(ReferralError):
    """Raised when a candidate or attachment does not exist."""

    kind = "not_found"


class RateLimitError(ReferralError):
    """Raised when a client exceeds the API request budget."""

    kind = "rate_limited"

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class StorageError(ReferralError):
    """Raised when attachment I/O fails or times out."""

    kind = "storage_error"

    def __init__(self, message: str, transient: bool = True):
        super().__init__(message)
        self.transient = transient


__all__ = [
    "ConflictError",
    "NotFoundError",
    "RateLimitError",
    "ReferralError",
    "StorageError",
    "ValidationError",
]
