# FILE: ondevice_ai/__init__.py
"""
On-device AI capability layer.

Discovers which host surface implements each AI capability family, negotiates
the one-time model download with user consent, reuses sessions and returns a
uniform InvocationResult for every call.
"""

from ondevice_ai.schemas import (
    AvailabilityState,
    CapabilityFamily,
    DetectionResult,
    ErrorCategory,
    InvocationResult,
    TranslationResult,
)
from ondevice_ai.bindings import Binding, BindingStrategy, resolve_binding
from ondevice_ai.consent import ConsentHooks
from ondevice_ai.errors import classify_error
from ondevice_ai.client import OnDeviceAI, get_client, load_host, set_client

__all__ = [
    # Schemas
    "AvailabilityState",
    "CapabilityFamily",
    "DetectionResult",
    "ErrorCategory",
    "InvocationResult",
    "TranslationResult",

    # Components
    "Binding",
    "BindingStrategy",
    "resolve_binding",
    "ConsentHooks",
    "classify_error",

    # Client
    "OnDeviceAI",
    "get_client",
    "load_host",
    "set_client",
]
