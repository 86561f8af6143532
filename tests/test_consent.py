# FILE: tests/test_consent.py
"""
Tests for ondevice_ai/consent.py
Consent-gated download negotiation.
"""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from conftest import make_surface
from ondevice_ai.availability import CapabilityCache
from ondevice_ai.bindings import resolve_binding
from ondevice_ai.consent import ConsentHooks, DownloadController, ProgressMonitor, download_percent
from ondevice_ai.errors import CapabilityUnavailableError, DownloadDeclinedError, DownloadFailedError
from ondevice_ai.schemas import AvailabilityState, CapabilityFamily

FAMILY = CapabilityFamily.SUMMARIZER


def _binding(surface):
    return resolve_binding(SimpleNamespace(ai=SimpleNamespace(summarizer=surface)), FAMILY)


def _recording_hooks(grant=True):
    """Hooks that append their name to a shared list."""
    calls = []
    hooks = ConsentHooks(
        request_download_permission=lambda: calls.append("permission") or grant,
        on_download_start=lambda: calls.append("start"),
        on_download_complete=lambda: calls.append("complete"),
        on_download_error=lambda exc: calls.append("error"),
    )
    return hooks, calls


@pytest.fixture
def controller():
    return DownloadController(CapabilityCache(), consent_mode="decline", download_timeout=5)


class TestReadyStates:

    @pytest.mark.asyncio
    async def test_readily_needs_no_consent(self, controller):
        hooks, calls = _recording_hooks()

        outcome = await controller.negotiate(FAMILY, _binding(make_surface("readily")), hooks)

        assert outcome.state == AvailabilityState.READILY
        assert outcome.downloaded is False
        assert calls == []

    @pytest.mark.asyncio
    async def test_no_raises_unavailable(self, controller):
        with pytest.raises(CapabilityUnavailableError):
            await controller.negotiate(FAMILY, _binding(make_surface("no")), ConsentHooks())

    @pytest.mark.asyncio
    async def test_factory_only_proceeds(self, controller):
        binding = resolve_binding(SimpleNamespace(ai=SimpleNamespace(createSummarizer=AsyncMock())), FAMILY)

        outcome = await controller.negotiate(FAMILY, binding, ConsentHooks())

        assert outcome.state == AvailabilityState.FACTORY_ONLY


class TestConsent:

    @pytest.mark.asyncio
    async def test_declined_hook(self, controller):
        surface = make_surface("after-download", download=True)
        hooks, calls = _recording_hooks(grant=False)

        with pytest.raises(DownloadDeclinedError) as excinfo:
            await controller.negotiate(FAMILY, _binding(surface), hooks)

        assert excinfo.value.availability == AvailabilityState.AFTER_DOWNLOAD
        assert calls == ["permission"]
        surface.downloadModel.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_hook_decline_mode(self, controller):
        surface = make_surface("after-download", download=True)

        with pytest.raises(DownloadDeclinedError):
            await controller.negotiate(FAMILY, _binding(surface), ConsentHooks())

    @pytest.mark.asyncio
    async def test_no_hook_accept_mode(self):
        controller = DownloadController(CapabilityCache(), consent_mode="accept", download_timeout=5)
        surface = make_surface("after-download", download=True)

        outcome = await controller.negotiate(FAMILY, _binding(surface), ConsentHooks())

        assert outcome.downloaded is True
        surface.downloadModel.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_async_permission_hook(self, controller):
        surface = make_surface("after-download", download=True)
        hooks = ConsentHooks(request_download_permission=AsyncMock(return_value=True))

        outcome = await controller.negotiate(FAMILY, _binding(surface), hooks)

        assert outcome.state == AvailabilityState.READILY

    def test_unknown_mode_falls_back_to_decline(self):
        controller = DownloadController(CapabilityCache(), consent_mode="sometimes")
        assert controller.consent_mode == "decline"


class TestDownload:

    @pytest.mark.asyncio
    async def test_hook_order_on_success(self, controller):
        surface = make_surface("after-download", download=True)
        hooks, calls = _recording_hooks()

        outcome = await controller.negotiate(FAMILY, _binding(surface), hooks)

        assert calls == ["permission", "start", "complete"]
        assert outcome.downloaded is True
        assert controller.cache.peek(FAMILY) == AvailabilityState.READILY

    @pytest.mark.asyncio
    async def test_hook_order_on_failure(self, controller):
        surface = make_surface("after-download", download=True)
        surface.downloadModel.side_effect = RuntimeError("disk full")
        hooks, calls = _recording_hooks()

        with pytest.raises(DownloadFailedError) as excinfo:
            await controller.negotiate(FAMILY, _binding(surface), hooks)

        assert calls == ["permission", "start", "error"]
        assert "disk full" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_capabilities_scoped_download_preferred(self, controller):
        scoped = AsyncMock()
        answer = SimpleNamespace(available="after-download", downloadModel=scoped)
        surface = make_surface(None, download=True)
        surface.capabilities = AsyncMock(return_value=answer)

        await controller.negotiate(FAMILY, _binding(surface), ConsentHooks(request_download_permission=lambda: True))

        scoped.assert_awaited_once()
        surface.downloadModel.assert_not_called()

    @pytest.mark.asyncio
    async def test_download_through_create(self, controller):
        session = SimpleNamespace()
        surface = make_surface("after-download")
        create_session = AsyncMock(return_value=session)
        hooks, calls = _recording_hooks()

        outcome = await controller.negotiate(FAMILY, _binding(surface), hooks, create_session=create_session)

        assert outcome.session is session
        assert calls == ["permission", "start", "complete"]

    @pytest.mark.asyncio
    async def test_no_download_path_fails(self, controller):
        surface = make_surface("after-download")

        with pytest.raises(DownloadFailedError):
            await controller.negotiate(FAMILY, _binding(surface), ConsentHooks(request_download_permission=lambda: True))

    @pytest.mark.asyncio
    async def test_download_timeout(self):
        controller = DownloadController(CapabilityCache(), consent_mode="accept", download_timeout=0.01)

        async def slow_download():
            await asyncio.sleep(1)

        surface = make_surface("after-download", downloadModel=slow_download)

        with pytest.raises(DownloadFailedError) as excinfo:
            await controller.negotiate(FAMILY, _binding(surface), ConsentHooks())

        assert "timed out" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_break_download(self, controller):
        surface = make_surface("after-download", download=True)
        hooks = ConsentHooks(
            request_download_permission=lambda: True,
            on_download_start=Mock(side_effect=RuntimeError("ui gone")),
        )

        outcome = await controller.negotiate(FAMILY, _binding(surface), hooks)

        assert outcome.downloaded is True

    @pytest.mark.asyncio
    async def test_concurrent_negotiations_download_once(self):
        controller = DownloadController(CapabilityCache(), consent_mode="accept", download_timeout=5)
        calls = []

        async def download():
            calls.append("download")
            await asyncio.sleep(0.01)

        surface = make_surface("after-download", downloadModel=download)
        binding = _binding(surface)

        outcomes = await asyncio.gather(*[controller.negotiate(FAMILY, binding, ConsentHooks()) for _ in range(3)])

        assert calls == ["download"]
        assert sum(1 for o in outcomes if o.downloaded) == 1


class TestDownloadPercent:
    """Percent computation for host progress events."""

    @pytest.mark.parametrize("loaded,total,expected", [
        (50, 200, 25),
        (200, 200, 100),
        (1, 3, 33),
        (0.5, None, 50),
        (0.25, 0, 25),
        (None, 100, None),
        ("10", 100, None),
    ])
    def test_percent(self, loaded, total, expected):
        assert download_percent(loaded, total) == expected


class _MonitorTarget:
    """Stand-in for the host's create monitor with addEventListener()."""

    def __init__(self):
        self.listeners = {}

    def addEventListener(self, name, listener):
        self.listeners[name] = listener

    def fire(self, name, event=None):
        self.listeners[name](event)


class TestProgressMonitor:

    def test_registers_listeners(self):
        target = _MonitorTarget()
        ProgressMonitor(FAMILY, ConsentHooks())(target)

        assert set(target.listeners) == {"downloadprogress", "downloadcomplete", "error"}

    def test_progress_relayed_and_deduplicated(self):
        seen = []
        target = _MonitorTarget()
        ProgressMonitor(FAMILY, ConsentHooks(on_download_progress=lambda *args: seen.append(args)))(target)

        target.fire("downloadprogress", {"loaded": 10, "total": 100})
        target.fire("downloadprogress", {"loaded": 10, "total": 100})
        target.fire("downloadprogress", SimpleNamespace(loaded=0.5, total=None))
        target.fire("downloadcomplete")
        target.fire("downloadprogress", {"loaded": 100, "total": 100})

        assert seen == [(10, 100, 10), (0.5, None, 50)]

    def test_missing_total_and_loaded(self):
        seen = []
        target = _MonitorTarget()
        ProgressMonitor(FAMILY, ConsentHooks(on_download_progress=lambda *args: seen.append(args)))(target)

        target.fire("downloadprogress", {})

        assert seen == [(None, None, None)]

    def test_failing_progress_hook_is_contained(self):
        target = _MonitorTarget()
        ProgressMonitor(FAMILY, ConsentHooks(on_download_progress=Mock(side_effect=RuntimeError("ui gone"))))(target)

        target.fire("downloadprogress", {"loaded": 1, "total": 2})
        target.fire("error", SimpleNamespace(message="network"))

    def test_target_without_listener_api(self):
        ProgressMonitor(FAMILY, ConsentHooks())(object())


class TestMonitorThroughCreate:

    @pytest.mark.asyncio
    async def test_create_receives_monitor(self, controller):
        seen = []
        hooks = ConsentHooks(
            request_download_permission=lambda: True,
            on_download_progress=lambda loaded, total, percent: seen.append(percent),
        )
        session = SimpleNamespace()

        async def create_session(monitor):
            target = _MonitorTarget()
            monitor(target)
            target.fire("downloadprogress", {"loaded": 3, "total": 4})
            target.fire("downloadcomplete")
            return session

        outcome = await controller.negotiate(
            FAMILY, _binding(make_surface("after-download")), hooks, create_session=create_session
        )

        assert outcome.session is session
        assert seen == [75]

    @pytest.mark.asyncio
    async def test_scoped_negotiation(self, controller):
        probe = AsyncMock(return_value="downloadable")
        surface = SimpleNamespace(create=AsyncMock(), availability=probe, downloadModel=AsyncMock())
        binding = resolve_binding(SimpleNamespace(Translator=surface), CapabilityFamily.TRANSLATOR)
        hooks = ConsentHooks(request_download_permission=lambda: True)

        await controller.negotiate(
            CapabilityFamily.TRANSLATOR, binding, hooks,
            probe_options={"targetLanguage": "pt"}, scope="en->pt",
        )

        assert controller.cache.peek(CapabilityFamily.TRANSLATOR, "en->pt") == AvailabilityState.READILY
        probe.assert_awaited_once_with({"targetLanguage": "pt"})
