# FILE: tests/test_mock_host.py
"""
Tests for ondevice_ai/mock_host.py
End-to-end runs of the facade over the in-process mock host.
"""
import pytest

from ondevice_ai.client import OnDeviceAI
from ondevice_ai.consent import ConsentHooks
from ondevice_ai.mock_host import MockLanguageDetector, MockSummarizer, create_mock_host
from ondevice_ai.schemas import ErrorCategory


class TestMockSessions:

    @pytest.mark.asyncio
    async def test_summarizer_keeps_three_sentences(self):
        summary = await MockSummarizer({"outputLanguage": "en"}).summarize("A. B. C. D.")

        assert summary == "--MOCK SUMMARIZER (en)--\nA. B. C."

    @pytest.mark.asyncio
    async def test_detector_ranks_portuguese(self):
        raw = await MockLanguageDetector({}).detect("O contrato é de que não há prazo")

        assert raw["languages"][0]["language"] == "pt"


class TestMockHostEndToEnd:

    @pytest.mark.asyncio
    async def test_download_flow(self):
        host = create_mock_host("after-download")
        client = OnDeviceAI(host, consent_mode="decline", download_timeout=5)
        hooks = ConsentHooks(request_download_permission=lambda: True)

        first = await client.summarize_text("First. Second.", hooks=hooks)
        second = await client.summarize_text("Third.", hooks=hooks)

        assert first.success and second.success
        assert first.source == "ai.summarizer"
        assert host.ai.summarizer.download_count == 1
        assert host.ai.summarizer.create_count == 1

    @pytest.mark.asyncio
    async def test_unavailable_host(self):
        client = OnDeviceAI(create_mock_host("no"), consent_mode="accept")

        result = await client.analyze_text(None, "hello")

        assert result.error == ErrorCategory.CAPABILITY_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_translate_round(self):
        client = OnDeviceAI(create_mock_host("readily"))

        result = await client.translate_text("Hello", "pt", source_language="en")

        assert result.result == {
            "text": "[pt] Hello",
            "detected_language": "en",
            "source_language": "en",
            "target_language": "pt",
        }

    @pytest.mark.asyncio
    async def test_long_prompt_with_signal(self):
        host = create_mock_host("readily")
        client = OnDeviceAI(host, prompt_chunk_chars=50)

        result = await client.analyze_text(None, "word " * 30, signal=object())

        assert result.success is True
        assert result.result.startswith("--MOCK RESPONSE (en)--")
        assert host.ai.assistant.create_count == 2
