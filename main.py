# FILE: main.py
"""
On-device AI service - FastAPI application.

Serves the capability layer over HTTP for a local UI:
- /ai/status, /ai/setup
- /ai/prompt, /ai/summarize, /ai/detect-language, /ai/translate

Run:
    ONDEVICE_AI_HOST=ondevice_ai.mock_host:create_mock_host uvicorn main:app --reload
"""
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env FIRST before any other imports that might need env vars
load_dotenv()

logging.basicConfig(
    level=logging.DEBUG if os.getenv("ONDEVICE_AI_DEBUG", "0") == "1" else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from ondevice_ai import config  # noqa: E402
from ondevice_ai.client import get_client  # noqa: E402
from ondevice_ai.router import router as ai_router  # noqa: E402

app = FastAPI(
    title="On-device AI",
    version="0.1.0",
    description="Capability negotiation and resilient invocation for on-device AI",
)

# ====== CORS ======

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:8000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ai_router)


# ====== STARTUP ======

@app.on_event("startup")
async def on_startup():
    print("[startup] Loading on-device AI host...")
    if config.HOST_SPEC:
        print(f"[startup] ONDEVICE_AI_HOST: [OK] {config.HOST_SPEC}")
    else:
        print("[startup] ONDEVICE_AI_HOST: [X] NOT SET - every capability will report unavailable")

    client = get_client()
    print(f"[startup] Consent mode: {client.downloads.consent_mode}")

    availability = await client.check_availability()
    for family, info in availability.items():
        marker = "[OK]" if info["available"] in ("readily", "factory-only") else "[X]"
        print(f"[startup] {family}: {marker} {info['available']} ({info.get('source') or 'no surface'})")


@app.get("/health")
def health():
    return {"status": "ok"}
