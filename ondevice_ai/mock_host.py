# FILE: ondevice_ai/mock_host.py
"""
Deterministic in-process host for local development.

Exposes all four families under the `ai.*` / `translation.*` surfaces with
short dummy outputs so the facade, the consent flow and the HTTP surface can
be exercised without a real on-device model.

Usage:
    ONDEVICE_AI_HOST=ondevice_ai.mock_host:create_mock_host
    ONDEVICE_AI_MOCK_AVAILABILITY=after-download   # exercise the download path
"""
import logging
import os
import re
from types import SimpleNamespace
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Small stop-word lists; enough to tell the mock's sample languages apart
_LANGUAGE_MARKERS: Dict[str, set] = {
    "en": {"the", "and", "is", "of", "to", "this", "in", "contract"},
    "pt": {"o", "a", "de", "que", "não", "em", "um", "uma", "contrato", "é"},
    "es": {"el", "la", "de", "que", "y", "en", "un", "una", "es", "contrato"},
}


class MockAssistant:
    def __init__(self, options: Dict[str, Any]):
        self.options = options

    async def prompt(self, text: str, options: Optional[Dict[str, Any]] = None) -> str:
        lang = self.options.get("outputLanguage", "en")
        suffix = "…" if len(text) > 200 else ""
        return f"--MOCK RESPONSE ({lang})--\n{text[:200]}{suffix}"


class MockSummarizer:
    def __init__(self, options: Dict[str, Any]):
        self.options = options

    async def summarize(self, text: str, options: Optional[Dict[str, Any]] = None) -> str:
        lang = self.options.get("outputLanguage", "en")
        sentences = [s for s in re.split(r"(?<=[.!?])\s+", text.strip()) if s]
        return f"--MOCK SUMMARIZER ({lang})--\n" + " ".join(sentences[:3])


class MockLanguageDetector:
    def __init__(self, options: Dict[str, Any]):
        self.options = options

    async def detect(self, text: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        words = re.findall(r"\w+", text.lower())
        scores = {lang: sum(1 for w in words if w in markers) for lang, markers in _LANGUAGE_MARKERS.items()}
        total = sum(scores.values())
        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
        return {
            "languages": [
                {"language": lang, "confidence": round(score / total, 3) if total else 0.0}
                for lang, score in ranked
            ]
        }


class MockTranslator:
    def __init__(self, options: Dict[str, Any]):
        self.options = options

    async def translate(self, text: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        target = self.options.get("targetLanguage", "en")
        return {
            "text": f"[{target}] {text}",
            "detectedSourceLanguage": self.options.get("sourceLanguage") or "en",
        }


class MockSurface:
    """A property-based surface with a probe, a factory and a download method."""

    def __init__(self, factory: Callable[[Dict[str, Any]], Any], availability: str = "readily"):
        self._factory = factory
        self.available = availability
        self.download_count = 0
        self.create_count = 0

    async def capabilities(self) -> Dict[str, str]:
        return {"available": self.available}

    async def create(self, options: Optional[Dict[str, Any]] = None) -> Any:
        if self.available == "no":
            raise RuntimeError("Mock capability not available")
        self.create_count += 1
        return self._factory(dict(options or {}))

    async def downloadModel(self) -> None:
        self.download_count += 1
        self.available = "readily"
        logger.info("[mock_host] simulated model download complete")


def create_mock_host(availability: Optional[str] = None) -> SimpleNamespace:
    availability = availability or os.getenv("ONDEVICE_AI_MOCK_AVAILABILITY", "readily")
    return SimpleNamespace(
        ai=SimpleNamespace(
            assistant=MockSurface(MockAssistant, availability),
            summarizer=MockSurface(MockSummarizer, availability),
            languageDetector=MockSurface(MockLanguageDetector, availability),
        ),
        translation=SimpleNamespace(
            translator=MockSurface(MockTranslator, availability),
        ),
    )


__all__ = [
    "MockAssistant",
    "MockSummarizer",
    "MockLanguageDetector",
    "MockTranslator",
    "MockSurface",
    "create_mock_host",
]
