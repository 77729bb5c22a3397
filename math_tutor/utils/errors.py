from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    # 4xx - Client errors
    INVALID_IMAGE_FORMAT = "E4001"
    VALIDATION_ERROR = "E4220"

    # 5xx - Service errors
    SERVICE_ERROR = "E5000"
    OCR_FAILED = "E5003"
    UPSTREAM_ERROR = "E5020"


class MathTutorError(Exception):
    """Base error for the math tutor."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.SERVICE_ERROR


class InputValidationError(MathTutorError):
    """Missing or invalid request input, rejected before the core runs."""

    status_code = 400
    code = ErrorCode.VALIDATION_ERROR


class ImageFormatError(InputValidationError):
    """Uploaded payload is not a recognizable image."""

    code = ErrorCode.INVALID_IMAGE_FORMAT


class MalformedResponseError(MathTutorError):
    """Model output that does not match the expected schema. Never leaves the parser."""


class TransportError(MathTutorError):
    """An external OCR/LLM call failed (network, quota, timeout)."""

    status_code = 502
    code = ErrorCode.UPSTREAM_ERROR


class LLMTransportError(TransportError):
    """LLM collaborator failure."""


class OcrTransportError(TransportError):
    """OCR collaborator failure."""

    code = ErrorCode.OCR_FAILED


class HintFetchError(TransportError):
    """Hint-fetch collaborator failure (or an unusable hint payload)."""


def build_error_payload(
    *,
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Canonical error shape handed to the HTTP layer.

    `error` is the primary string message; `message` is kept as an alias for readability.
    """
    payload: Dict[str, Any] = {"code": code.value, "error": str(message), "message": str(message)}
    if details is not None:
        payload["details"] = details
    if request_id:
        payload["request_id"] = str(request_id)
    return payload


def error_payload_for_exception(exc: BaseException, *, request_id: Optional[str] = None) -> Dict[str, Any]:
    """Map any exception leaving the service layer to the canonical error payload."""
    if isinstance(exc, MathTutorError):
        return build_error_payload(code=exc.code, message=str(exc), request_id=request_id)
    return build_error_payload(
        code=ErrorCode.SERVICE_ERROR,
        message="Eroare internă.",
        request_id=request_id,
    )
