# FILE: ondevice_ai/errors.py
"""
Error taxonomy and classifier for on-device AI invocations.

Raw host failures arrive with inconsistent types and messages. classify_error()
reduces every one of them to exactly one ErrorCategory plus the user-facing
guidance the presentation layer needs (message, fallback, retryable).

Classification order (first match wins):
1. Typed errors raised by this package (OnDeviceAIError subclasses)
2. download declined
3. download failed
4. capability absent / not available / undefined
5. quota / rate limit
6. model still loading
7. connectivity
8. GPU blocked
9. session destroyed
10. generic session failure
11. prompt or input rejected
12. anything else -> unknown
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ondevice_ai.schemas import AvailabilityState, ErrorCategory

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class OnDeviceAIError(Exception):
    """Base for errors raised inside the capability layer."""
    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        availability: Optional[AvailabilityState] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.availability = availability
        self.cause = cause


class ValidationError(OnDeviceAIError):
    category = ErrorCategory.VALIDATION_ERROR


class InputTooLargeError(ValidationError):
    category = ErrorCategory.INPUT_TOO_LARGE


class CapabilityUnavailableError(OnDeviceAIError):
    category = ErrorCategory.CAPABILITY_UNAVAILABLE


class DownloadDeclinedError(OnDeviceAIError):
    category = ErrorCategory.DOWNLOAD_DECLINED


class DownloadFailedError(OnDeviceAIError):
    category = ErrorCategory.DOWNLOAD_FAILED


class UnrecognizedResultError(OnDeviceAIError):
    """A host answer matched none of the known shapes."""
    category = ErrorCategory.INVALID_RESPONSE


# =============================================================================
# RULES
# =============================================================================

@dataclass(frozen=True)
class CategoryRule:
    """User-facing guidance for one error category."""
    category: ErrorCategory
    message: str
    fallback: str
    retryable: bool
    log_level: str = "warning"


CATEGORY_RULES: Dict[ErrorCategory, CategoryRule] = {
    ErrorCategory.VALIDATION_ERROR: CategoryRule(
        category=ErrorCategory.VALIDATION_ERROR,
        message="Invalid input. Please check your text and try again.",
        fallback="fix_input",
        retryable=False,
        log_level="info",
    ),
    ErrorCategory.INPUT_TOO_LARGE: CategoryRule(
        category=ErrorCategory.INPUT_TOO_LARGE,
        message="Input is too large for this operation.",
        fallback="shorten_input",
        retryable=False,
        log_level="info",
    ),
    ErrorCategory.CAPABILITY_UNAVAILABLE: CategoryRule(
        category=ErrorCategory.CAPABILITY_UNAVAILABLE,
        message="On-device AI is not available. Check the host configuration and experimental flags.",
        fallback="setup_required",
        retryable=False,
    ),
    ErrorCategory.DOWNLOAD_DECLINED: CategoryRule(
        category=ErrorCategory.DOWNLOAD_DECLINED,
        message="Model download was declined. Start the action again to allow the download.",
        fallback="enable_download",
        retryable=False,
        log_level="info",
    ),
    ErrorCategory.DOWNLOAD_FAILED: CategoryRule(
        category=ErrorCategory.DOWNLOAD_FAILED,
        message="Model download failed. Check your connection and try again.",
        fallback="retry",
        retryable=True,
    ),
    ErrorCategory.MODEL_LOADING: CategoryRule(
        category=ErrorCategory.MODEL_LOADING,
        message="AI model not ready. The model may still be downloading.",
        fallback="retry_later",
        retryable=True,
    ),
    ErrorCategory.RATE_LIMITED: CategoryRule(
        category=ErrorCategory.RATE_LIMITED,
        message="AI usage limit reached. Please try again in a few minutes.",
        fallback="retry_later",
        retryable=True,
    ),
    ErrorCategory.NETWORK_ERROR: CategoryRule(
        category=ErrorCategory.NETWORK_ERROR,
        message="Network error. Please check your connection.",
        fallback="retry",
        retryable=True,
    ),
    ErrorCategory.GPU_BLOCKED: CategoryRule(
        category=ErrorCategory.GPU_BLOCKED,
        message="GPU access is blocked by system settings or hardware limits. Restart the host or check GPU settings.",
        fallback="restart_required",
        retryable=False,
        log_level="error",
    ),
    ErrorCategory.SESSION_DESTROYED: CategoryRule(
        category=ErrorCategory.SESSION_DESTROYED,
        message="AI session was destroyed, possibly due to memory limits. A new session will be created.",
        fallback="auto_retry",
        retryable=True,
    ),
    ErrorCategory.SESSION_ERROR: CategoryRule(
        category=ErrorCategory.SESSION_ERROR,
        message="AI session error. Try shorter text or different wording.",
        fallback="retry_shorter",
        retryable=True,
    ),
    ErrorCategory.PROMPT_ERROR: CategoryRule(
        category=ErrorCategory.PROMPT_ERROR,
        message="Invalid prompt or input. Please check your text and try again.",
        fallback="retry_different",
        retryable=True,
    ),
    ErrorCategory.INVALID_RESPONSE: CategoryRule(
        category=ErrorCategory.INVALID_RESPONSE,
        message="The AI returned a result in an unrecognized format.",
        fallback="retry",
        retryable=True,
    ),
    ErrorCategory.UNKNOWN: CategoryRule(
        category=ErrorCategory.UNKNOWN,
        message="Unexpected AI error. Please try again.",
        fallback="retry",
        retryable=True,
        log_level="error",
    ),
}


# Ordered keyword rules over the lower-cased message; first hit wins
KEYWORD_RULES: Tuple[Tuple[ErrorCategory, Tuple[str, ...]], ...] = (
    (ErrorCategory.DOWNLOAD_DECLINED, ("download declined", "model_download_declined", "declined")),
    (ErrorCategory.DOWNLOAD_FAILED, ("download failed", "model_download_failed")),
    (ErrorCategory.CAPABILITY_UNAVAILABLE, ("not available", "unavailable", "undefined", "not supported")),
    (ErrorCategory.RATE_LIMITED, ("quota", "rate limit", "limit", "too many requests", "429")),
    (ErrorCategory.MODEL_LOADING, ("model", "loading", "download")),
    (ErrorCategory.NETWORK_ERROR, ("network", "fetch", "connection", "offline")),
    (ErrorCategory.GPU_BLOCKED, ("gpu is blocked", "notallowederror")),
    (ErrorCategory.SESSION_DESTROYED, ("session has been destroyed", "session destroyed")),
    (ErrorCategory.SESSION_ERROR, ("unknownerror", "generic failures")),
    (ErrorCategory.PROMPT_ERROR, ("prompt", "input")),
)


@dataclass(frozen=True)
class ErrorClassification:
    """Outcome of classify_error()."""
    category: ErrorCategory
    message: str
    fallback: str
    retryable: bool
    cause: str = ""
    error_name: str = ""


def get_category_rule(category: ErrorCategory) -> CategoryRule:
    """Get the guidance for a category (unknown if missing)."""
    return CATEGORY_RULES.get(category, CATEGORY_RULES[ErrorCategory.UNKNOWN])


def match_category(text: str) -> ErrorCategory:
    """Ordered keyword match over an error text. Never returns None."""
    haystack = (text or "").lower()
    for category, keywords in KEYWORD_RULES:
        if any(k in haystack for k in keywords):
            return category
    return ErrorCategory.UNKNOWN


def classify_error(exc: BaseException) -> ErrorClassification:
    """
    Map any exception to one category with user guidance.

    Typed package errors keep their own category and message (validation and
    download errors carry messages written for the user). Everything else is
    matched on "<ExceptionName>: <message>" so name-only signals such as
    NotAllowedError are recognized too.
    """
    error_name = type(exc).__name__
    raw = str(exc)

    if isinstance(exc, OnDeviceAIError):
        category = exc.category
        rule = get_category_rule(category)
        message = raw if category.is_validation else rule.message
        if exc.cause is not None:
            raw = f"{raw}: {exc.cause}"
    else:
        category = match_category(f"{error_name}: {raw}")
        rule = get_category_rule(category)
        message = rule.message

    return ErrorClassification(
        category=category,
        message=message,
        fallback=rule.fallback,
        retryable=rule.retryable,
        cause=raw,
        error_name=error_name,
    )


def log_classification(classification: ErrorClassification, operation: str) -> None:
    """Log a classified failure at the level its rule asks for."""
    rule = get_category_rule(classification.category)
    log_fn = getattr(logger, rule.log_level, logger.warning)
    log_fn(
        "[errors] %s failed: %s (%s: %s)",
        operation,
        classification.category.value,
        classification.error_name,
        classification.cause,
    )


__all__ = [
    "OnDeviceAIError",
    "ValidationError",
    "InputTooLargeError",
    "CapabilityUnavailableError",
    "DownloadDeclinedError",
    "DownloadFailedError",
    "UnrecognizedResultError",
    "CategoryRule",
    "CATEGORY_RULES",
    "KEYWORD_RULES",
    "ErrorClassification",
    "get_category_rule",
    "match_category",
    "classify_error",
    "log_classification",
]
