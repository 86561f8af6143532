# FILE: ondevice_ai/client.py
"""
On-device AI client - the invocation facade.

Single entrypoints for the four capability families:
- analyze_text()     assistant / prompt
- summarize_text()   summarizer
- detect_language()  language detector
- translate_text()   translator

Every call follows the same path:
    validate input -> resolve binding (cached) -> negotiate availability/consent
    -> get-or-create session -> host call -> normalize -> InvocationResult

Any exception on that path is classified and returned as a failure envelope;
only task cancellation propagates. After a host-side failure the family's
binding, cached availability and session are dropped so the next call starts
from a fresh resolve.

The client owns all of its caches. Construct one per process (get_client()
does this for the HTTP surface) and pass it to callers.
"""
from __future__ import annotations

import importlib
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ondevice_ai import config
from ondevice_ai.availability import CapabilityCache, maybe_await
from ondevice_ai.bindings import Binding, resolve_binding
from ondevice_ai.consent import ConsentHooks, DownloadController
from ondevice_ai.errors import (
    CapabilityUnavailableError,
    InputTooLargeError,
    OnDeviceAIError,
    ValidationError,
    classify_error,
    log_classification,
)
from ondevice_ai.normalize import normalize_detection, normalize_text, normalize_translation
from ondevice_ai.schemas import AvailabilityState, CapabilityFamily, InvocationResult
from ondevice_ai.sessions import SessionCache

logger = logging.getLogger(__name__)


SETUP_INSTRUCTIONS: Dict[str, Any] = {
    "title": "On-device AI setup",
    "steps": [
        {
            "step": 1,
            "title": "Use a host build with built-in AI",
            "description": "Install a host build that ships the built-in AI APIs (Prompt, Summarizer, Language Detector, Translator).",
        },
        {
            "step": 2,
            "title": "Enable the experimental flags",
            "description": "Enable the built-in AI flags for each capability you need.",
            "flags": [
                "prompt-api-for-gemini-nano",
                "summarization-api-for-gemini-nano",
                "language-detection-api",
                "translation-api",
            ],
        },
        {
            "step": 3,
            "title": "Restart the host",
            "description": "Restart after enabling the flags.",
        },
        {
            "step": 4,
            "title": "Allow the model download",
            "description": "The first use of each capability asks to download its model once.",
        },
    ],
    "troubleshooting": [
        {"problem": "APIs not available", "solution": "Check the host version and that the flags are enabled."},
        {"problem": "Model does not load", "solution": "Wait a few minutes for the download or restart the host."},
        {"problem": "Quota errors", "solution": "Wait a few minutes before trying again."},
    ],
}


def _require_text(text: Any, what: str) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f"Provide non-empty text for {what}.")
    return text


class OnDeviceAI:
    """Capability negotiation and resilient invocation over one host."""

    def __init__(
        self,
        host: Any,
        hooks: Optional[ConsentHooks] = None,
        consent_mode: Optional[str] = None,
        download_timeout: Optional[float] = None,
        max_translate_chars: Optional[int] = None,
        output_language: Optional[str] = None,
        prompt_chunk_chars: Optional[int] = None,
    ):
        self.host = host
        self.hooks = hooks or ConsentHooks()
        self.max_translate_chars = (
            config.MAX_TRANSLATE_CHARS if max_translate_chars is None else int(max_translate_chars)
        )
        self.prompt_chunk_chars = (
            config.PROMPT_CHUNK_CHARS if prompt_chunk_chars is None else int(prompt_chunk_chars)
        )
        self.output_language = output_language or config.DEFAULT_OUTPUT_LANGUAGE

        self.capabilities = CapabilityCache(probe_options={"outputLanguage": self.output_language})
        self.downloads = DownloadController(
            self.capabilities,
            consent_mode=consent_mode,
            download_timeout=download_timeout,
        )
        self.sessions = SessionCache()
        self._bindings: Dict[CapabilityFamily, Binding] = {}
        self._resolve_counts: Dict[CapabilityFamily, int] = {}

    # -------------------------------------------------------------------------
    # Bindings / reset
    # -------------------------------------------------------------------------

    def get_binding(self, family: CapabilityFamily) -> Optional[Binding]:
        binding = self._bindings.get(family)
        if binding is not None:
            return binding

        self._resolve_counts[family] = self._resolve_counts.get(family, 0) + 1
        binding = resolve_binding(self.host, family)
        if binding is not None:
            self._bindings[family] = binding
        return binding

    def resolve_count(self, family: CapabilityFamily) -> int:
        return self._resolve_counts.get(family, 0)

    def reset(self, family: Optional[CapabilityFamily] = None) -> None:
        """Forget binding, availability and session for one family (or all)."""
        if family is None:
            self._bindings.clear()
        else:
            self._bindings.pop(family, None)
        self.capabilities.clear(family)
        self.sessions.invalidate(family)
        logger.debug("[client] reset %s", family.value if family else "all families")

    # -------------------------------------------------------------------------
    # Shared invocation path
    # -------------------------------------------------------------------------

    def _failure(
        self,
        family: CapabilityFamily,
        operation: str,
        exc: BaseException,
        reset: bool = True,
    ) -> InvocationResult:
        classification = classify_error(exc)
        log_classification(classification, operation)

        availability = exc.availability if isinstance(exc, OnDeviceAIError) else None
        if availability is None:
            availability = self.capabilities.peek(family)

        if reset and not classification.category.is_validation:
            self.reset(family)

        return InvocationResult.fail(
            error=classification.category,
            message=classification.message,
            fallback=classification.fallback,
            retryable=classification.retryable,
            cause=classification.cause or None,
            error_name=classification.error_name or None,
            availability=availability,
        )

    async def _invoke(
        self,
        family: CapabilityFamily,
        operation: str,
        create_options: Dict[str, Any],
        call: Callable[[Any], Awaitable[Any]],
        hooks: Optional[ConsentHooks],
        force_new: bool,
        scope: Optional[str] = None,
    ) -> InvocationResult:
        """
        Shared path for the four operations.

        The create options double as availability probe options, matching
        hosts whose `availability(options)` answers per configuration.
        `scope` keeps those answers apart in the cache (translator pairs).
        """
        binding = self.get_binding(family)
        if binding is None:
            return self._failure(
                family,
                operation,
                CapabilityUnavailableError(
                    f"{family.value} is not available: host exposes no matching API",
                    availability=AvailabilityState.NO,
                ),
                reset=False,
            )

        try:
            negotiation = await self.downloads.negotiate(
                family,
                binding,
                hooks or self.hooks,
                create_session=lambda monitor: self.sessions.get_or_create(
                    family, binding, create_options, force_new=True, monitor=monitor
                ),
                probe_options=create_options,
                scope=scope,
            )
            session = negotiation.session
            if session is None:
                session = await self.sessions.get_or_create(family, binding, create_options, force_new)

            result = await call(session)
        except Exception as exc:
            return self._failure(family, operation, exc)

        logger.debug("[client] %s succeeded via %s", operation, binding.source)
        return InvocationResult.ok(result, source=binding.source, availability=negotiation.state)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def analyze_text(
        self,
        system_prompt: Optional[str],
        user_text: str,
        options: Optional[Dict[str, Any]] = None,
        hooks: Optional[ConsentHooks] = None,
        force_new: bool = False,
        signal: Any = None,
    ) -> InvocationResult:
        """
        Send `user_text` to an assistant session primed with `system_prompt`.

        Text longer than `prompt_chunk_chars` is prompted chunk by chunk on the
        cached session; the partial answers are then merged by a one-off
        reduce session created with REDUCE_SYSTEM_PROMPT.
        """
        family = CapabilityFamily.ASSISTANT
        try:
            _require_text(user_text, "analysis")
        except ValidationError as exc:
            return self._failure(family, "analyze", exc, reset=False)

        create_options = {
            "systemPrompt": system_prompt or config.DEFAULT_SYSTEM_PROMPT,
            "outputLanguage": self.output_language,
            **(options or {}),
        }
        prompt_options = {"signal": signal} if signal is not None else None

        async def ask(session: Any, text: str) -> str:
            if prompt_options:
                raw = session.prompt(text, prompt_options)
            else:
                raw = session.prompt(text)
            return normalize_text(await maybe_await(raw), "prompt")

        async def call(session: Any) -> str:
            limit = self.prompt_chunk_chars
            if limit <= 0 or len(user_text) <= limit:
                return await ask(session, user_text)

            chunks = [user_text[i:i + limit] for i in range(0, len(user_text), limit)]
            logger.info("[client] analyze: %d chars in %d chunks", len(user_text), len(chunks))
            partials = []
            for chunk in chunks:
                partials.append(await ask(session, chunk))
            return await self._reduce(family, create_options, partials, ask)

        return await self._invoke(family, "analyze", create_options, call, hooks, force_new)

    async def _reduce(
        self,
        family: CapabilityFamily,
        create_options: Dict[str, Any],
        partials: List[str],
        ask: Callable[[Any, str], Awaitable[str]],
    ) -> str:
        """Merge partial answers in a separate session that is not cached."""
        binding = self.get_binding(family)
        if binding is None:
            raise CapabilityUnavailableError(f"{family.value} binding lost before reduce")

        options = {**create_options, "systemPrompt": config.REDUCE_SYSTEM_PROMPT}
        options = {k: v for k, v in options.items() if v is not None}
        reducer = await maybe_await(binding.create(options))
        if reducer is None:
            raise RuntimeError(f"{binding.source} create() returned no session")

        try:
            return await ask(reducer, "\n\n".join(partials))
        finally:
            destroy = getattr(reducer, "destroy", None)
            if callable(destroy) and not inspect.iscoroutinefunction(destroy):
                try:
                    destroy()
                except Exception as exc:
                    logger.warning("[client] reduce session destroy() failed: %s", exc)

    async def summarize_text(
        self,
        text: str,
        options: Optional[Dict[str, Any]] = None,
        hooks: Optional[ConsentHooks] = None,
        force_new: bool = False,
        signal: Any = None,
    ) -> InvocationResult:
        """Summarize `text`; `options` override type/format/length."""
        family = CapabilityFamily.SUMMARIZER
        try:
            _require_text(text, "summarization")
        except ValidationError as exc:
            return self._failure(family, "summarize", exc, reset=False)

        create_options = {
            **config.SUMMARIZER_DEFAULTS,
            "outputLanguage": self.output_language,
            **(options or {}),
        }

        async def call(session: Any) -> str:
            if signal is not None:
                raw = session.summarize(text, {"signal": signal})
            else:
                raw = session.summarize(text)
            return normalize_text(await maybe_await(raw), "summarize")

        return await self._invoke(family, "summarize", create_options, call, hooks, force_new)

    async def detect_language(
        self,
        text: str,
        detect_options: Optional[Dict[str, Any]] = None,
        create_options: Optional[Dict[str, Any]] = None,
        hooks: Optional[ConsentHooks] = None,
        force_new: bool = False,
        signal: Any = None,
    ) -> InvocationResult:
        """
        Detect the language of `text`.

        Success result: {"language": "<lower-cased tag>", "confidence": float | None}
        """
        family = CapabilityFamily.LANGUAGE_DETECTOR
        try:
            trimmed = _require_text(text, "language detection").strip()
        except ValidationError as exc:
            return self._failure(family, "detect_language", exc, reset=False)

        options = {"signal": signal, **(detect_options or {})}
        options = {k: v for k, v in options.items() if v is not None}

        async def call(session: Any) -> Dict[str, Any]:
            raw = await maybe_await(session.detect(trimmed, options))
            return normalize_detection(raw).model_dump()

        return await self._invoke(
            family, "detect_language", dict(create_options or {}), call, hooks, force_new
        )

    async def translate_text(
        self,
        text: str,
        target_language: str,
        source_language: Optional[str] = None,
        translate_options: Optional[Dict[str, Any]] = None,
        create_options: Optional[Dict[str, Any]] = None,
        hooks: Optional[ConsentHooks] = None,
        force_new: bool = False,
        signal: Any = None,
    ) -> InvocationResult:
        """
        Translate `text` into `target_language`.

        Success result: {"text", "detected_language", "source_language", "target_language"}.
        Translating back with source/target swapped is not expected to return
        the original text.
        """
        family = CapabilityFamily.TRANSLATOR
        try:
            if not isinstance(target_language, str) or not target_language.strip():
                raise ValidationError('Provide the target language (for example "pt").')
            trimmed = _require_text(text, "translation").strip()
            if len(trimmed) > self.max_translate_chars:
                raise InputTooLargeError(
                    f"Text is too long to translate (>{self.max_translate_chars} characters)."
                )
        except ValidationError as exc:
            return self._failure(family, "translate", exc, reset=False)

        target = target_language.strip()
        options = {
            "sourceLanguage": source_language,
            "targetLanguage": target,
            **(create_options or {}),
        }
        call_options = {"signal": signal, **(translate_options or {})}
        call_options = {k: v for k, v in call_options.items() if v is not None}

        async def call(session: Any) -> Dict[str, Any]:
            translate = getattr(session, "translate", None)
            if not callable(translate):
                raise TypeError("translator session has no translate() method")
            raw = await maybe_await(translate(trimmed, call_options))
            return normalize_translation(raw, target, source_language).model_dump()

        scope = f"{source_language or 'auto'}->{target}"
        return await self._invoke(family, "translate", options, call, hooks, force_new, scope=scope)

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    async def check_availability(self) -> Dict[str, Dict[str, Any]]:
        """Probe every family without creating sessions."""
        report: Dict[str, Dict[str, Any]] = {}
        for family in CapabilityFamily:
            binding = self.get_binding(family)
            if binding is None:
                report[family.value] = {"available": AvailabilityState.NO.value, "source": None}
                continue
            try:
                state = await self.capabilities.get_availability(family, binding)
            except Exception as exc:
                classification = classify_error(exc)
                log_classification(classification, f"probe {family.value}")
                self.reset(family)
                report[family.value] = {
                    "available": AvailabilityState.UNKNOWN.value,
                    "source": binding.source,
                    "error": classification.category.value,
                }
                continue
            report[family.value] = {"available": state.value, "source": binding.source}
        return report

    async def self_test(self) -> Dict[str, Any]:
        """Availability report plus one prompt and one summarize round when possible."""
        availability = await self.check_availability()
        results: Dict[str, Any] = {"availability": availability, "prompt_test": None, "summarizer_test": None}

        if availability[CapabilityFamily.ASSISTANT.value]["available"] != AvailabilityState.NO.value:
            prompt = await self.analyze_text(config.DEFAULT_SYSTEM_PROMPT, "Say hello in English.")
            results["prompt_test"] = {
                "success": prompt.success,
                "result": prompt.result if prompt.success else prompt.message,
            }

        if availability[CapabilityFamily.SUMMARIZER.value]["available"] != AvailabilityState.NO.value:
            summary = await self.summarize_text(
                "This is a long text that needs to be summarized to test the on-device summarizer. "
                "It contains several pieces of information that should be condensed into a short, "
                "useful summary."
            )
            results["summarizer_test"] = {
                "success": summary.success,
                "result": summary.result if summary.success else summary.message,
            }

        return results

    def setup_instructions(self) -> Dict[str, Any]:
        return SETUP_INSTRUCTIONS

    def get_status(self) -> Dict[str, Any]:
        availability: Dict[str, str] = {}
        for fam in CapabilityFamily:
            state = self.capabilities.peek(fam)
            if state is not None:
                availability[fam.value] = state.value

        return {
            "bindings": {fam.value: b.source for fam, b in self._bindings.items()},
            "availability": availability,
            "sessions": self.sessions.get_status(),
            "consent_mode": self.downloads.consent_mode,
        }


# =============================================================================
# PROCESS CLIENT
# =============================================================================

def load_host(spec: Optional[str] = None) -> Any:
    """
    Import the host named by "module:attribute".

    A callable attribute is treated as a factory and called once. An empty
    spec yields an empty host on which every family is unavailable.
    """
    spec = (config.HOST_SPEC if spec is None else spec).strip()
    if not spec:
        logger.warning("[client] ONDEVICE_AI_HOST not set; all capabilities unavailable")
        return {}

    module_name, _, attr = spec.partition(":")
    module = importlib.import_module(module_name)
    host = getattr(module, attr) if attr else module
    if attr and callable(host):
        host = host()
    logger.info("[client] loaded host from %s", spec)
    return host


_client: Optional[OnDeviceAI] = None


def get_client() -> OnDeviceAI:
    global _client
    if _client is None:
        _client = OnDeviceAI(load_host())
    return _client


def set_client(client: Optional[OnDeviceAI]) -> None:
    """Install (or clear) the process client."""
    global _client
    _client = client


__all__ = [
    "SETUP_INSTRUCTIONS",
    "OnDeviceAI",
    "load_host",
    "get_client",
    "set_client",
]
