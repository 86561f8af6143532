# FILE: ondevice_ai/availability.py
"""
Per-family cache of the last availability answer from the host.

The probe is called at most once per family (and scope) until an error
reset clears the entry. A completed download marks the entry ready without
re-probing.
"""
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ondevice_ai.bindings import Binding
from ondevice_ai.errors import UnrecognizedResultError
from ondevice_ai.schemas import AvailabilityState, CapabilityFamily

logger = logging.getLogger(__name__)


# Host vocabularies seen across versions
AVAILABILITY_ALIASES: Dict[str, AvailabilityState] = {
    "no": AvailabilityState.NO,
    "unavailable": AvailabilityState.NO,
    "after-download": AvailabilityState.AFTER_DOWNLOAD,
    "downloadable": AvailabilityState.AFTER_DOWNLOAD,
    "downloading": AvailabilityState.AFTER_DOWNLOAD,
    "readily": AvailabilityState.READILY,
    "available": AvailabilityState.READILY,
}


async def maybe_await(value: Any) -> Any:
    """Host methods may be plain or async; await only what needs it."""
    if inspect.isawaitable(value):
        return await value
    return value


def parse_availability(raw: Any) -> AvailabilityState:
    """
    Map a probe answer to an AvailabilityState.

    Accepts a bare string, a mapping with "available", or an object with an
    `available` attribute.
    """
    value = raw
    if isinstance(raw, Mapping):
        value = raw.get("available")
    elif not isinstance(raw, str):
        value = getattr(raw, "available", None)

    if isinstance(value, str):
        state = AVAILABILITY_ALIASES.get(value.strip().lower())
        if state is not None:
            return state

    raise UnrecognizedResultError(f"Unrecognized availability answer from host: {raw!r}")


@dataclass
class CapabilityEntry:
    state: AvailabilityState
    capabilities: Any = None        # Raw probe answer; may carry downloadModel()


# (family, scope); scope separates answers that depend on call options,
# e.g. one translator language pair from another
CacheKey = Tuple[CapabilityFamily, Optional[str]]


class CapabilityCache:
    """Availability answers keyed by family and optional scope."""

    def __init__(self, probe_options: Optional[Dict[str, Any]] = None):
        self._entries: Dict[CacheKey, CapabilityEntry] = {}
        self._probe_options = dict(probe_options or {})

    async def get_availability(
        self,
        family: CapabilityFamily,
        binding: Binding,
        probe_options: Optional[Dict[str, Any]] = None,
        scope: Optional[str] = None,
    ) -> AvailabilityState:
        entry = await self.get_entry(family, binding, probe_options, scope)
        return entry.state

    async def get_entry(
        self,
        family: CapabilityFamily,
        binding: Binding,
        probe_options: Optional[Dict[str, Any]] = None,
        scope: Optional[str] = None,
    ) -> CapabilityEntry:
        """
        Cached entry for (family, scope), probing the host on a miss.

        `probe_options` are merged over the cache defaults and only reach
        `availability(options)` probes; `capabilities()` takes no arguments.
        """
        key = (family, scope)
        cached = self._entries.get(key)
        if cached is not None:
            logger.debug("[availability] %s%s cache hit: %s", family.value, _scope_label(scope), cached.state.value)
            return cached

        if not binding.has_probe:
            entry = CapabilityEntry(state=AvailabilityState.FACTORY_ONLY)
        else:
            if binding.probe_name == "availability":
                options = {**self._probe_options, **(probe_options or {})}
                options = {k: v for k, v in options.items() if v is not None}
                raw = await maybe_await(binding.probe(options))
            else:
                raw = await maybe_await(binding.probe())
            entry = CapabilityEntry(state=parse_availability(raw), capabilities=raw)

        logger.info(
            "[availability] %s%s via %s: %s",
            family.value, _scope_label(scope), binding.source, entry.state.value,
        )
        self._entries[key] = entry
        return entry

    def peek(self, family: CapabilityFamily, scope: Optional[str] = None) -> Optional[AvailabilityState]:
        """
        Cached state without probing (None when never probed).

        Without a scope, the unscoped entry wins, else the most recent scoped one.
        """
        entry = self._entries.get((family, scope))
        if entry is None and scope is None:
            scoped = [e for (fam, _), e in self._entries.items() if fam == family]
            entry = scoped[-1] if scoped else None
        return entry.state if entry else None

    def mark_ready(self, family: CapabilityFamily, scope: Optional[str] = None) -> None:
        """Record a completed download so later calls skip negotiation."""
        entry = self._entries.get((family, scope))
        capabilities = entry.capabilities if entry else None
        self._entries[(family, scope)] = CapabilityEntry(state=AvailabilityState.READILY, capabilities=capabilities)

    def clear(self, family: Optional[CapabilityFamily] = None) -> None:
        if family is None:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k[0] == family]:
            del self._entries[key]


def _scope_label(scope: Optional[str]) -> str:
    return f" [{scope}]" if scope else ""


__all__ = [
    "AVAILABILITY_ALIASES",
    "maybe_await",
    "parse_availability",
    "CapabilityEntry",
    "CacheKey",
    "CapabilityCache",
]
