"""
Error taxonomy for the scoring pipeline
"""
from enum import Enum
from typing import Any, Dict

from fastapi import HTTPException


class Reason(str, Enum):
    UNSUPPORTED_FORMAT = "UnsupportedFormat"
    EXTRACTION_FAILED = "ExtractionFailed"
    CORRUPT_OR_UNSUPPORTED = "CorruptOrUnsupported"
    TIMEOUT = "Timeout"
    SCORER_UNAVAILABLE = "ScorerUnavailable"


class JobfitError(Exception):
    """Base exception for the pipeline"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ExtractionError(JobfitError):
    """Raised by an extraction backend that could not produce text"""

    def __init__(self, message: str, reason: Reason, backend: str = None, **kwargs):
        self.reason = reason
        details = kwargs.pop("details", {})
        details["reason"] = reason.value
        if backend:
            details["backend"] = backend
        super().__init__(message, error_code="EXTRACTION_ERROR", details=details, **kwargs)


class DocumentError(JobfitError):
    """Raised by the parsing coordinator; carries a short message safe to show users"""

    def __init__(self, message: str, reason: Reason, user_message: str, filename: str = None, **kwargs):
        self.reason = reason
        self.user_message = user_message
        details = kwargs.pop("details", {})
        details["reason"] = reason.value
        if filename:
            details["filename"] = filename
        super().__init__(message, error_code="DOCUMENT_ERROR", details=details, **kwargs)


class OrchestratorError(JobfitError):
    """Raised when scoring cannot produce any report"""

    def __init__(self, message: str, reason: Reason, user_message: str, **kwargs):
        self.reason = reason
        self.user_message = user_message
        details = kwargs.pop("details", {})
        details["reason"] = reason.value
        super().__init__(message, error_code="ORCHESTRATOR_ERROR", details=details, **kwargs)


class ScorerError(JobfitError):
    """Raised when the AI scorer is unreachable or answers with something unusable"""

    def __init__(self, message: str, service_name: str = "gemini", **kwargs):
        details = kwargs.pop("details", {})
        details["service_name"] = service_name
        super().__init__(message, error_code="SCORER_ERROR", details=details, **kwargs)


class JobNotFoundError(JobfitError):
    """Raised when the job catalog has no entry for an id"""

    def __init__(self, job_id: int, **kwargs):
        super().__init__(f"Job {job_id} not found", error_code="JOB_NOT_FOUND", details={"job_id": job_id}, **kwargs)


_REASON_STATUS = {
    Reason.UNSUPPORTED_FORMAT: 400,
    Reason.CORRUPT_OR_UNSUPPORTED: 400,
    Reason.EXTRACTION_FAILED: 422,
    Reason.TIMEOUT: 504,
}


def map_to_http_exception(exc: JobfitError) -> HTTPException:
    """Map pipeline exceptions to HTTP exceptions"""
    if isinstance(exc, JobNotFoundError):
        status_code = 404
    else:
        status_code = _REASON_STATUS.get(getattr(exc, "reason", None), 500)

    detail = {
        "error": exc.to_dict(),
        "message": getattr(exc, "user_message", None) or exc.message,
    }
    return HTTPException(status_code=status_code, detail=detail)
