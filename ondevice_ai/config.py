# FILE: ondevice_ai/config.py
"""
Environment-driven defaults for the on-device AI layer.

Every value here can be overridden per client through OnDeviceAI(...)
constructor arguments; the module constants are only the process defaults.
"""
import logging
import os
from typing import Any, Dict

# =============================================================================
# HOST
# =============================================================================

# "package.module:attribute" - attribute may be the host object or a zero-arg factory
HOST_SPEC = os.getenv("ONDEVICE_AI_HOST", "").strip()

# =============================================================================
# CONSENT / DOWNLOAD
# =============================================================================

CONSENT_DECLINE = "decline"
CONSENT_ACCEPT = "accept"
CONSENT_PROMPT = "prompt"
CONSENT_MODES = (CONSENT_DECLINE, CONSENT_ACCEPT, CONSENT_PROMPT)

# What happens when a caller supplies no request_download_permission hook
CONSENT_MODE = os.getenv("ONDEVICE_AI_CONSENT_MODE", CONSENT_DECLINE).strip().lower()

# Bound on a single model download; 0 disables the bound
DOWNLOAD_TIMEOUT_SECONDS = float(os.getenv("ONDEVICE_AI_DOWNLOAD_TIMEOUT_SECONDS", "300"))

# =============================================================================
# INPUT LIMITS / LANGUAGES
# =============================================================================

MAX_TRANSLATE_CHARS = int(os.getenv("ONDEVICE_AI_MAX_TRANSLATE_CHARS", "10000"))

DEFAULT_TARGET_LANGUAGE = os.getenv("ONDEVICE_AI_TARGET_LANGUAGE", "pt").strip()
DEFAULT_OUTPUT_LANGUAGE = os.getenv("ONDEVICE_AI_OUTPUT_LANGUAGE", "en").strip()

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

# Assistant input longer than this is prompted in chunks and the partial
# answers are merged by a second session; 0 disables chunking
PROMPT_CHUNK_CHARS = int(os.getenv("ONDEVICE_AI_PROMPT_CHUNK_CHARS", "1500"))

REDUCE_SYSTEM_PROMPT = (
    "Synthesize the following partial outputs into one coherent answer.\n"
    "Preserve any citations exactly as they appear."
)

SUMMARIZER_DEFAULTS: Dict[str, Any] = {
    "type": "key-points",     # "key-points", "tl;dr", "teaser", "headline"
    "format": "markdown",     # "markdown", "plain-text"
    "length": "medium",       # "short", "medium", "long"
}

# =============================================================================
# DEBUG
# =============================================================================

AI_DEBUG = os.getenv("ONDEVICE_AI_DEBUG", "0") == "1"

if AI_DEBUG:
    logging.getLogger("ondevice_ai").setLevel(logging.DEBUG)


__all__ = [
    "HOST_SPEC",
    "CONSENT_DECLINE",
    "CONSENT_ACCEPT",
    "CONSENT_PROMPT",
    "CONSENT_MODES",
    "CONSENT_MODE",
    "DOWNLOAD_TIMEOUT_SECONDS",
    "MAX_TRANSLATE_CHARS",
    "DEFAULT_TARGET_LANGUAGE",
    "DEFAULT_OUTPUT_LANGUAGE",
    "DEFAULT_SYSTEM_PROMPT",
    "PROMPT_CHUNK_CHARS",
    "REDUCE_SYSTEM_PROMPT",
    "SUMMARIZER_DEFAULTS",
    "AI_DEBUG",
]
