# FILE: ondevice_ai/schemas.py
"""
Pydantic models for the on-device AI capability layer.

Defines the capability families, availability states, the closed error
taxonomy and the invocation envelope returned by every public operation.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


class CapabilityFamily(str, Enum):
    """The four host capability families this layer negotiates."""
    ASSISTANT = "assistant"
    SUMMARIZER = "summarizer"
    LANGUAGE_DETECTOR = "language_detector"
    TRANSLATOR = "translator"


class AvailabilityState(str, Enum):
    """What the host reported about a family's readiness."""
    UNKNOWN = "unknown"
    NO = "no"
    AFTER_DOWNLOAD = "after-download"
    READILY = "readily"
    FACTORY_ONLY = "factory-only"    # No probe exposed; treated as readily

    @property
    def usable(self) -> bool:
        return self in (AvailabilityState.READILY, AvailabilityState.FACTORY_ONLY)


class ErrorCategory(str, Enum):
    """Closed set of failure categories surfaced to callers."""
    # Input
    VALIDATION_ERROR = "validation_error"
    INPUT_TOO_LARGE = "input_too_large"

    # Negotiation
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    DOWNLOAD_DECLINED = "download_declined"
    DOWNLOAD_FAILED = "download_failed"

    # Host runtime
    MODEL_LOADING = "model_loading"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"
    GPU_BLOCKED = "gpu_blocked"
    SESSION_DESTROYED = "session_destroyed"
    SESSION_ERROR = "session_error"
    PROMPT_ERROR = "prompt_error"
    INVALID_RESPONSE = "invalid_response"

    UNKNOWN = "unknown"

    @property
    def is_validation(self) -> bool:
        return self in (ErrorCategory.VALIDATION_ERROR, ErrorCategory.INPUT_TOO_LARGE)


class DetectionResult(BaseModel):
    """Canonical language detection output."""
    language: str                    # Lower-cased BCP-47 tag, e.g. "en-us"
    confidence: Optional[float] = None


class TranslationResult(BaseModel):
    """Canonical translation output."""
    text: str
    detected_language: Optional[str] = None
    source_language: Optional[str] = None   # Detected, else the requested source
    target_language: str


class InvocationResult(BaseModel):
    """
    Uniform envelope returned by every facade operation.

    Success: success, result, source, timestamp (+ availability).
    Failure: success, error, message, fallback, retryable, timestamp
             (+ cause, error_name, availability).
    """
    success: bool
    timestamp: datetime = Field(default_factory=utcnow)
    availability: Optional[AvailabilityState] = None

    # Success fields
    result: Any = None
    source: Optional[str] = None

    # Failure fields
    error: Optional[ErrorCategory] = None
    message: Optional[str] = None
    fallback: Optional[str] = None
    retryable: Optional[bool] = None
    cause: Optional[str] = None
    error_name: Optional[str] = None

    @classmethod
    def ok(
        cls,
        result: Any,
        source: str,
        availability: Optional[AvailabilityState] = None,
    ) -> "InvocationResult":
        return cls(success=True, result=result, source=source, availability=availability)

    @classmethod
    def fail(
        cls,
        error: ErrorCategory,
        message: str,
        fallback: str,
        retryable: bool,
        cause: Optional[str] = None,
        error_name: Optional[str] = None,
        availability: Optional[AvailabilityState] = None,
    ) -> "InvocationResult":
        return cls(
            success=False,
            error=error,
            message=message,
            fallback=fallback,
            retryable=retryable,
            cause=cause,
            error_name=error_name,
            availability=availability,
        )

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# HTTP REQUEST MODELS
# =============================================================================

class PromptRequest(BaseModel):
    user_text: str
    system_prompt: Optional[str] = None
    output_language: Optional[str] = None
    force_new: bool = False


class SummarizeRequest(BaseModel):
    text: str
    type: Optional[str] = None       # "key-points", "tl;dr", "teaser", "headline"
    format: Optional[str] = None     # "markdown", "plain-text"
    length: Optional[str] = None     # "short", "medium", "long"
    force_new: bool = False


class DetectLanguageRequest(BaseModel):
    text: str
    force_new: bool = False


class TranslateRequest(BaseModel):
    text: str
    target_language: Optional[str] = None
    source_language: Optional[str] = None
    force_new: bool = False


__all__ = [
    "utcnow",
    "CapabilityFamily",
    "AvailabilityState",
    "ErrorCategory",
    "DetectionResult",
    "TranslationResult",
    "InvocationResult",
    "PromptRequest",
    "SummarizeRequest",
    "DetectLanguageRequest",
    "TranslateRequest",
]
