# FILE: ondevice_ai/normalize.py
"""
Normalize heterogeneous host result shapes into canonical models.

Each raw shape the hosts are known to return has its own small pydantic
model. A result is validated against the shapes in order; the first match is
converted, and a result matching none raises UnrecognizedResultError instead
of leaking partial data.

Detection shapes:
    {"languages": [{"language": "en", "confidence": 0.9}, ...]}
    [{"detectedLanguage": "en", "confidence": 0.9}, ...]
    {"detectedLanguage": "en", "confidence": 0.9}

Translation shapes:
    "texto"
    {"text" | "translatedText": "...", "detectedSourceLanguage"?: "en"}

Summary / prompt shapes:
    "text"
    {"text": "..."}
"""
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ondevice_ai.errors import UnrecognizedResultError
from ondevice_ai.schemas import DetectionResult, TranslationResult


class _RawShape(BaseModel):
    model_config = ConfigDict(extra="ignore", from_attributes=True)


# =============================================================================
# RAW SHAPES
# =============================================================================

class RawLanguageCandidate(_RawShape):
    language: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("language", "detectedLanguage")
    )
    confidence: Optional[float] = None


class RawLanguageList(_RawShape):
    languages: List[RawLanguageCandidate]


class RawTranslation(_RawShape):
    # Hosts may send both keys with one of them null; the first non-empty wins
    text: Optional[str] = None
    translated_text: Optional[str] = Field(default=None, validation_alias="translatedText")
    detected_source_language: Optional[str] = Field(default=None, validation_alias="detectedSourceLanguage")
    source_language: Optional[str] = Field(default=None, validation_alias="sourceLanguage")

    @property
    def output(self) -> Optional[str]:
        return self.text or self.translated_text

    @property
    def detected_language(self) -> Optional[str]:
        return self.detected_source_language or self.source_language


class RawText(_RawShape):
    text: str


def _validate(shape: type, raw: Any) -> Optional[Any]:
    if raw is None or isinstance(raw, (str, bytes)):
        return None
    try:
        return shape.model_validate(raw)
    except ValidationError:
        return None


# =============================================================================
# DETECTION
# =============================================================================

def _top_candidate(raw: Any) -> Optional[RawLanguageCandidate]:
    if isinstance(raw, (list, tuple)):
        candidates = [c for c in (_validate(RawLanguageCandidate, item) for item in raw) if c is not None]
        return candidates[0] if candidates else None

    listed = _validate(RawLanguageList, raw)
    if listed is not None:
        return listed.languages[0] if listed.languages else None

    return _validate(RawLanguageCandidate, raw)


def normalize_detection(raw: Any) -> DetectionResult:
    """Reduce any known detection shape to DetectionResult (language lower-cased)."""
    top = _top_candidate(raw)
    if top is None or not (top.language or "").strip():
        raise UnrecognizedResultError(f"Language detection returned no usable language: {raw!r}")
    return DetectionResult(language=top.language.strip().lower(), confidence=top.confidence)


# =============================================================================
# TRANSLATION
# =============================================================================

def normalize_translation(
    raw: Any,
    target_language: str,
    source_language: Optional[str] = None,
) -> TranslationResult:
    """Reduce any known translation shape to TranslationResult."""
    if isinstance(raw, str):
        text, detected = raw, None
    else:
        parsed = _validate(RawTranslation, raw)
        text = parsed.output if parsed else None
        detected = parsed.detected_language if parsed else None

    if not text or not text.strip():
        raise UnrecognizedResultError(f"Translation returned no usable output: {raw!r}")

    return TranslationResult(
        text=text,
        detected_language=detected,
        source_language=detected or source_language,
        target_language=target_language,
    )


# =============================================================================
# TEXT (summaries, prompt answers)
# =============================================================================

def normalize_text(raw: Any, operation: str = "operation") -> str:
    if isinstance(raw, str):
        return raw
    parsed = _validate(RawText, raw)
    if parsed is None:
        raise UnrecognizedResultError(f"{operation} returned an unrecognized result: {raw!r}")
    return parsed.text


__all__ = [
    "RawLanguageCandidate",
    "RawLanguageList",
    "RawTranslation",
    "RawText",
    "normalize_detection",
    "normalize_translation",
    "normalize_text",
]
