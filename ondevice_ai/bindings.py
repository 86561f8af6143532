# FILE: ondevice_ai/bindings.py
"""
Binding resolver - finds which host surface implements a capability family.

Hosts expose the same capability under different names depending on their
version/channel (a top-level `Summarizer`, `ai.summarizer`, or only a
`createSummarizer` factory on a namespace). Each family has an ordered tuple
of BindingStrategy records; the first one present wins.

Property-based surfaces come first because they usually carry a
`capabilities()`/`availability()` probe that factory-only surfaces lack.

Resolution only inspects presence. It never calls anything on the host.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from ondevice_ai.schemas import CapabilityFamily

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class BindingStrategy:
    """One candidate host surface for a family."""
    name: str                       # Label reported as the result source
    path: Tuple[str, ...]           # Attribute path from the host root
    factories: Tuple[str, ...]      # Accepted factory method names at that path
    probes: Tuple[str, ...] = ("capabilities", "availability")


@dataclass
class Binding:
    """A resolved host surface. Shared by all callers of one client."""
    family: CapabilityFamily
    source: str
    target: Any
    create: Callable[..., Any]
    probe: Optional[Callable[..., Any]] = None
    probe_name: Optional[str] = None
    download: Optional[Callable[..., Any]] = None

    @property
    def has_probe(self) -> bool:
        return self.probe is not None


def _property_surface(name: str) -> BindingStrategy:
    return BindingStrategy(name=name, path=tuple(name.split(".")), factories=("create",))


def _factory_surface(namespace: str, factory: str) -> BindingStrategy:
    path = tuple(namespace.split(".")) if namespace else ()
    return BindingStrategy(
        name=f"{namespace}.{factory}" if namespace else factory,
        path=path,
        factories=(factory,),
        probes=(),
    )


BINDING_STRATEGIES: Dict[CapabilityFamily, Tuple[BindingStrategy, ...]] = {
    CapabilityFamily.ASSISTANT: (
        _property_surface("LanguageModel"),
        _property_surface("ai.languageModel"),
        _property_surface("ai.assistant"),
        _factory_surface("ai", "createTextSession"),
    ),
    CapabilityFamily.SUMMARIZER: (
        _property_surface("Summarizer"),
        _property_surface("ai.summarizer"),
        _factory_surface("ai", "createSummarizer"),
    ),
    CapabilityFamily.LANGUAGE_DETECTOR: (
        _property_surface("LanguageDetector"),
        _property_surface("ai.languageDetector"),
        _property_surface("translation.languageDetector"),
        _factory_surface("translation", "createDetector"),
    ),
    CapabilityFamily.TRANSLATOR: (
        _property_surface("Translator"),
        _property_surface("translation.translator"),
        _property_surface("ai.translator"),
        _factory_surface("translation", "createTranslator"),
        _factory_surface("ai", "createTranslator"),
    ),
}


def _lookup(obj: Any, name: str) -> Any:
    """Attribute or mapping lookup that never raises."""
    if obj is None:
        return _MISSING
    if isinstance(obj, Mapping):
        return obj.get(name, _MISSING)
    try:
        return getattr(obj, name, _MISSING)
    except Exception:
        # Some host properties raise when the feature is disabled
        return _MISSING


def _walk(host: Any, path: Tuple[str, ...]) -> Any:
    current = host
    for part in path:
        current = _lookup(current, part)
        if current is _MISSING or current is None:
            return _MISSING
    return current


def _callable_member(obj: Any, names: Tuple[str, ...]) -> Tuple[Optional[str], Optional[Callable[..., Any]]]:
    for name in names:
        member = _lookup(obj, name)
        if member is not _MISSING and callable(member):
            return name, member
    return None, None


def try_strategy(host: Any, family: CapabilityFamily, strategy: BindingStrategy) -> Optional[Binding]:
    """Return a Binding when the strategy's surface is present, else None."""
    target = _walk(host, strategy.path)
    if target is _MISSING:
        return None

    _, create = _callable_member(target, strategy.factories)
    if create is None:
        return None

    probe_name, probe = _callable_member(target, strategy.probes)
    _, download = _callable_member(target, ("downloadModel",))

    return Binding(
        family=family,
        source=strategy.name,
        target=target,
        create=create,
        probe=probe,
        probe_name=probe_name,
        download=download,
    )


def resolve_binding(host: Any, family: CapabilityFamily) -> Optional[Binding]:
    """
    Locate the host surface implementing `family`.

    Returns None when no strategy matches, which callers treat as the
    terminal "unavailable" state for this attempt.
    """
    for strategy in BINDING_STRATEGIES.get(family, ()):
        binding = try_strategy(host, family, strategy)
        if binding is not None:
            logger.debug("[bindings] %s resolved via %s", family.value, strategy.name)
            return binding

    logger.debug("[bindings] %s: no host surface found", family.value)
    return None


__all__ = [
    "BindingStrategy",
    "Binding",
    "BINDING_STRATEGIES",
    "try_strategy",
    "resolve_binding",
]
