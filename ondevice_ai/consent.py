# FILE: ondevice_ai/consent.py
"""
Consent-gated model download negotiation.

State machine for one negotiation attempt:

    unknown --probe--> no              -> CapabilityUnavailableError
                       readily         -> proceed
                       factory-only    -> proceed
                       after-download  -> ask permission
                                            declined -> DownloadDeclinedError
                                            granted  -> on_download_start
                                                        download
                                                          ok   -> readily, on_download_complete
                                                          fail -> on_download_error, DownloadFailedError

Hook call order is always: request_download_permission, on_download_start,
any number of on_download_progress, then exactly one of
on_download_complete / on_download_error.

Download method lookup: capabilities-scoped downloadModel(), then the
binding's downloadModel(). When the host exposes neither, the first create()
performs the download and is run inside the same hook bracket, with a
`monitor` create option that relays the host's download events.

Concurrent negotiations for one family are serialized; a waiter that finds the
family already ready skips the download entirely.
"""
import asyncio
import inspect
import logging
import math
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from ondevice_ai import config
from ondevice_ai.availability import CapabilityCache, maybe_await
from ondevice_ai.bindings import Binding
from ondevice_ai.errors import (
    CapabilityUnavailableError,
    DownloadDeclinedError,
    DownloadFailedError,
)
from ondevice_ai.schemas import AvailabilityState, CapabilityFamily

logger = logging.getLogger(__name__)


@dataclass
class ConsentHooks:
    """
    Caller-supplied callbacks for a download negotiation (sync or async).

    request_download_permission() -> bool        asked once per negotiation
    on_download_start()                           before the download begins
    on_download_progress(loaded, total, percent)  host progress events (percent may be None)
    on_download_complete()                        after a successful download
    on_download_error(exc)                        after a failed download
    """
    request_download_permission: Optional[Callable[[], Any]] = None
    on_download_start: Optional[Callable[[], Any]] = None
    on_download_complete: Optional[Callable[[], Any]] = None
    on_download_error: Optional[Callable[[BaseException], Any]] = None
    on_download_progress: Optional[Callable[[Any, Any, Optional[int]], Any]] = None


@dataclass
class Negotiation:
    """Outcome of negotiate(). `session` is set when create() did the download."""
    state: AvailabilityState
    session: Any = None
    downloaded: bool = False


# =============================================================================
# PROGRESS MONITOR
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def download_percent(loaded: Any, total: Any) -> Optional[int]:
    """
    Whole percent for a progress event.

    With a positive total: loaded / total. Without one, `loaded` is read as a
    0..1 fraction. Anything else gives None.
    """
    if not _is_number(loaded):
        return None
    fraction = loaded / total if _is_number(total) and total > 0 else loaded
    return int(math.floor(fraction * 100 + 0.5))


_NO_PROGRESS = object()


def _event_field(event: Any, name: str) -> Any:
    if isinstance(event, Mapping):
        return event.get(name)
    return getattr(event, name, None)


class ProgressMonitor:
    """
    Create-time `monitor` option: registers download listeners on the host's
    monitor target and relays them to ConsentHooks.on_download_progress.

    Repeated percentages are dropped, and progress after completion is ignored.
    """

    def __init__(self, family: CapabilityFamily, hooks: ConsentHooks):
        self.family = family
        self.hooks = hooks
        self.last_percent: Any = _NO_PROGRESS
        self.completed = False

    def __call__(self, target: Any) -> None:
        add = getattr(target, "addEventListener", None) or getattr(target, "add_event_listener", None)
        if not callable(add):
            logger.debug("[consent] %s monitor target has no event listener API", self.family.value)
            return
        add("downloadprogress", self.on_progress)
        add("downloadcomplete", self.on_complete)
        add("error", self.on_error)

    def on_progress(self, event: Any) -> None:
        if self.completed:
            return
        loaded = _event_field(event, "loaded")
        total = _event_field(event, "total")
        percent = download_percent(loaded, total)
        if percent == self.last_percent:
            return
        self.last_percent = percent

        logger.debug("[consent] %s download progress: %s%%", self.family.value, "?" if percent is None else percent)
        hook = self.hooks.on_download_progress
        if hook is None:
            return
        try:
            result = hook(loaded, total, percent)
            if inspect.isawaitable(result):
                asyncio.ensure_future(result)
        except Exception as exc:
            logger.warning("[consent] on_download_progress hook failed for %s: %s", self.family.value, exc)

    def on_complete(self, event: Any = None) -> None:
        if self.completed:
            return
        self.completed = True
        logger.debug("[consent] %s download complete (host event)", self.family.value)

    def on_error(self, event: Any = None) -> None:
        message = _event_field(event, "message") or event
        logger.warning("[consent] %s download error event: %s", self.family.value, message)


# =============================================================================
# CONTROLLER
# =============================================================================

def _confirm_on_stdin(family: CapabilityFamily) -> bool:
    if not sys.stdin or not sys.stdin.isatty():
        logger.warning("[consent] no interactive terminal; declining %s download", family.value)
        return False
    answer = input(
        f"The on-device {family.value.replace('_', ' ')} model must be downloaded once. Continue? [y/N] "
    )
    return answer.strip().lower() in ("y", "yes")


class DownloadController:
    """Runs the consent protocol and the one-time download per family."""

    def __init__(
        self,
        cache: CapabilityCache,
        consent_mode: Optional[str] = None,
        download_timeout: Optional[float] = None,
    ):
        self.cache = cache
        self.consent_mode = (consent_mode or config.CONSENT_MODE).lower()
        if self.consent_mode not in config.CONSENT_MODES:
            logger.warning("[consent] unknown consent mode %r; using decline", self.consent_mode)
            self.consent_mode = config.CONSENT_DECLINE
        self.download_timeout = (
            config.DOWNLOAD_TIMEOUT_SECONDS if download_timeout is None else float(download_timeout)
        )
        self._locks: Dict[CapabilityFamily, asyncio.Lock] = {}

    def _lock(self, family: CapabilityFamily) -> asyncio.Lock:
        lock = self._locks.get(family)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[family] = lock
        return lock

    async def negotiate(
        self,
        family: CapabilityFamily,
        binding: Binding,
        hooks: Optional[ConsentHooks] = None,
        create_session: Optional[Callable[[ProgressMonitor], Awaitable[Any]]] = None,
        probe_options: Optional[Dict[str, Any]] = None,
        scope: Optional[str] = None,
    ) -> Negotiation:
        """
        Bring `family` to a usable state or raise.

        `create_session(monitor)` is only used when the host has no download
        method and the first create() is what fetches the model.
        `probe_options`/`scope` reach the availability cache unchanged.
        """
        hooks = hooks or ConsentHooks()

        state = await self.cache.get_availability(family, binding, probe_options, scope)
        if state == AvailabilityState.NO:
            raise CapabilityUnavailableError(
                f"{family.value} is not available on this host", availability=state
            )
        if state.usable:
            return Negotiation(state=state)

        async with self._lock(family):
            # Another negotiation may have finished while we waited
            state = await self.cache.get_availability(family, binding, probe_options, scope)
            if state.usable:
                logger.debug("[consent] %s became ready while waiting", family.value)
                return Negotiation(state=state)

            granted = await self.request_permission(family, hooks)
            if not granted:
                logger.info("[consent] %s model download declined", family.value)
                raise DownloadDeclinedError(
                    f"{family.value} model download declined", availability=state
                )

            entry = await self.cache.get_entry(family, binding, probe_options, scope)
            download = self._find_download(entry.capabilities, binding)
            if download is None and create_session is None:
                raise DownloadFailedError(
                    f"{family.value} model download failed: host exposes no download method",
                    availability=state,
                )

            await self._notify(hooks.on_download_start, family, "on_download_start")
            session = None
            try:
                if download is not None:
                    logger.info("[consent] downloading %s model via %s", family.value, binding.source)
                    await self._bounded(download())
                else:
                    logger.info("[consent] %s model downloads on first create", family.value)
                    session = await self._bounded(create_session(ProgressMonitor(family, hooks)))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("[consent] download failed for %s: %s", family.value, exc)
                await self._notify(hooks.on_download_error, family, "on_download_error", exc)
                if isinstance(exc, asyncio.TimeoutError):
                    reason = f"timed out after {self.download_timeout:g}s"
                else:
                    reason = str(exc) or type(exc).__name__
                raise DownloadFailedError(
                    f"{family.value} model download failed: {reason}",
                    availability=state,
                    cause=exc,
                ) from exc

            self.cache.mark_ready(family, scope)
            await self._notify(hooks.on_download_complete, family, "on_download_complete")
            logger.info("[consent] %s model ready", family.value)
            return Negotiation(state=AvailabilityState.READILY, session=session, downloaded=True)

    async def request_permission(self, family: CapabilityFamily, hooks: ConsentHooks) -> bool:
        if hooks.request_download_permission is not None:
            return bool(await maybe_await(hooks.request_download_permission()))

        if self.consent_mode == config.CONSENT_ACCEPT:
            return True
        if self.consent_mode == config.CONSENT_PROMPT:
            return await asyncio.to_thread(_confirm_on_stdin, family)
        return False

    @staticmethod
    def _find_download(capabilities: Any, binding: Binding) -> Optional[Callable[[], Any]]:
        if capabilities is not None and not isinstance(capabilities, (str, dict)):
            scoped = getattr(capabilities, "downloadModel", None)
            if callable(scoped):
                return scoped
        if isinstance(capabilities, dict) and callable(capabilities.get("downloadModel")):
            return capabilities["downloadModel"]
        return binding.download

    async def _bounded(self, value: Any) -> Any:
        if self.download_timeout and self.download_timeout > 0:
            return await asyncio.wait_for(maybe_await(value), timeout=self.download_timeout)
        return await maybe_await(value)

    @staticmethod
    async def _notify(
        hook: Optional[Callable[..., Any]],
        family: CapabilityFamily,
        name: str,
        *args: Any,
    ) -> None:
        if hook is None:
            return
        try:
            await maybe_await(hook(*args))
        except Exception as exc:
            logger.warning("[consent] %s hook failed for %s: %s", name, family.value, exc)


__all__ = [
    "ConsentHooks",
    "Negotiation",
    "download_percent",
    "ProgressMonitor",
    "DownloadController",
]
