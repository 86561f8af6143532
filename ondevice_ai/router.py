# FILE: ondevice_ai/router.py
"""
FastAPI router exposing the on-device AI facade.

Endpoints:
- GET  /ai/status           - availability per family + cached state
- GET  /ai/setup            - setup instructions
- POST /ai/prompt           - assistant prompt
- POST /ai/summarize        - summarization
- POST /ai/detect-language  - language detection
- POST /ai/translate        - translation

Operation endpoints always answer 200 with the InvocationResult envelope;
`success: false` carries the error category and retryable flag. Consent for
model downloads follows ONDEVICE_AI_CONSENT_MODE since there is no user to ask.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter

from ondevice_ai import config
from ondevice_ai.client import get_client
from ondevice_ai.schemas import (
    DetectLanguageRequest,
    InvocationResult,
    PromptRequest,
    SummarizeRequest,
    TranslateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ondevice-ai"])


@router.get("/status")
async def get_status() -> Dict[str, Any]:
    """Probe every family and report what the client has cached."""
    client = get_client()
    availability = await client.check_availability()
    status = client.get_status()
    status["availability"] = availability
    return status


@router.get("/setup")
async def get_setup() -> Dict[str, Any]:
    return get_client().setup_instructions()


@router.post("/prompt", response_model=InvocationResult, response_model_exclude_none=True)
async def prompt(request: PromptRequest) -> InvocationResult:
    options = {"outputLanguage": request.output_language} if request.output_language else None
    return await get_client().analyze_text(
        request.system_prompt,
        request.user_text,
        options=options,
        force_new=request.force_new,
    )


@router.post("/summarize", response_model=InvocationResult, response_model_exclude_none=True)
async def summarize(request: SummarizeRequest) -> InvocationResult:
    options = {
        key: value
        for key, value in (("type", request.type), ("format", request.format), ("length", request.length))
        if value
    }
    return await get_client().summarize_text(request.text, options=options, force_new=request.force_new)


@router.post("/detect-language", response_model=InvocationResult, response_model_exclude_none=True)
async def detect_language(request: DetectLanguageRequest) -> InvocationResult:
    return await get_client().detect_language(request.text, force_new=request.force_new)


@router.post("/translate", response_model=InvocationResult, response_model_exclude_none=True)
async def translate(request: TranslateRequest) -> InvocationResult:
    target = request.target_language or config.DEFAULT_TARGET_LANGUAGE
    if not request.target_language:
        logger.debug("[router] no target language in request; using %s", target)
    return await get_client().translate_text(
        request.text,
        target,
        source_language=request.source_language,
        force_new=request.force_new,
    )


__all__ = ["router"]
