# FILE: ondevice_ai/sessions.py
"""
Session instance cache - at most one live host session per family.

A cached session is reused while the create options match the ones it was
built with. force_new, an options change, or an invalidate() replaces it.
No lock: two concurrent creates both run and the last one to finish is kept.
"""
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ondevice_ai.availability import maybe_await
from ondevice_ai.bindings import Binding
from ondevice_ai.schemas import CapabilityFamily

logger = logging.getLogger(__name__)


def options_fingerprint(options: Dict[str, Any]) -> str:
    """Stable key for create options; non-JSON values compare by repr."""
    return json.dumps(options, sort_keys=True, default=repr)


@dataclass
class CachedSession:
    session: Any
    fingerprint: str
    source: str


class SessionCache:
    """Holds the live session for each family."""

    def __init__(self):
        self._sessions: Dict[CapabilityFamily, CachedSession] = {}
        self._create_counts: Dict[CapabilityFamily, int] = {}

    async def get_or_create(
        self,
        family: CapabilityFamily,
        binding: Binding,
        create_options: Optional[Dict[str, Any]] = None,
        force_new: bool = False,
        monitor: Any = None,
    ) -> Any:
        """
        Cached session for `family`, or a new one from `binding.create(options)`.

        `monitor` is added to the create options of a new session only; it is
        not part of the fingerprint.
        """
        options = {k: v for k, v in (create_options or {}).items() if v is not None}
        fingerprint = options_fingerprint(options)

        cached = self._sessions.get(family)
        if cached is not None and not force_new:
            if cached.fingerprint == fingerprint and cached.source == binding.source:
                logger.debug("[sessions] reusing %s session", family.value)
                return cached.session
            logger.info("[sessions] %s create options changed; replacing session", family.value)

        # Empty the slot first so a failed create never leaves a stale handle behind
        self.invalidate(family)

        logger.info("[sessions] creating %s session via %s", family.value, binding.source)
        if monitor is not None:
            options = {**options, "monitor": monitor}
        session = await maybe_await(binding.create(options))
        if session is None:
            raise RuntimeError(f"{binding.source} create() returned no session")

        self._sessions[family] = CachedSession(session=session, fingerprint=fingerprint, source=binding.source)
        self._create_counts[family] = self._create_counts.get(family, 0) + 1
        return session

    def get(self, family: CapabilityFamily) -> Optional[Any]:
        cached = self._sessions.get(family)
        return cached.session if cached else None

    def has(self, family: CapabilityFamily) -> bool:
        return family in self._sessions

    def create_count(self, family: CapabilityFamily) -> int:
        return self._create_counts.get(family, 0)

    def invalidate(self, family: Optional[CapabilityFamily] = None) -> None:
        """Drop cached session(s), destroying them when the host allows it."""
        families = list(self._sessions) if family is None else [family]
        for fam in families:
            cached = self._sessions.pop(fam, None)
            if cached is None:
                continue
            destroy = getattr(cached.session, "destroy", None)
            if callable(destroy) and not inspect.iscoroutinefunction(destroy):
                try:
                    destroy()
                except Exception as exc:
                    logger.warning("[sessions] destroy() failed for %s: %s", fam.value, exc)
            logger.debug("[sessions] %s session dropped", fam.value)

    def get_status(self) -> Dict[str, Any]:
        return {
            fam.value: {"source": cached.source, "created": self._create_counts.get(fam, 0)}
            for fam, cached in self._sessions.items()
        }


__all__ = [
    "options_fingerprint",
    "CachedSession",
    "SessionCache",
]
