"""
Label Scan API - FastAPI Main Entry

Receives a label photo from the mobile app, stores it in Supabase Storage,
asks Gemini (vision + Google Search) for the label data and returns the
normalized result.

✅ LOCAL:
    cd backend
    python -m uvicorn labelscan.main:app --reload --host 0.0.0.0 --port 8000

✅ TEST LOCALLY:
    curl -i http://127.0.0.1:8000/health
    curl -i -X POST http://127.0.0.1:8000/analyze-label \\
        -H "content-type: application/json" \\
        -d "{\\"photoBase64\\": \\"$(base64 -w0 label.jpg)\\", \\"latitude\\": 40.0, \\"longitude\\": -83.0}"

✅ PRODUCTION:
    Build Command:
        pip install .
    Start Command:
        python -m uvicorn labelscan.main:app --host 0.0.0.0 --port $PORT
"""
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from labelscan.api.routes_analyze import router as analyze_router
from labelscan.api.routes_meta import router as meta_router
from labelscan.core.config import settings
from labelscan.core.errors import LabelScanError
from labelscan.core.gemini import GeminiLabelExtractor
from labelscan.core.logging import get_logger
from labelscan.core.storage import PhotoStore
from labelscan.services.analysis_service import LabelAnalysisService

logger = get_logger(__name__)

# Headers the mobile client's functions SDK sends on every call.
CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One pooled HTTP client per process; per-call timeouts are set by each collaborator.
    async with httpx.AsyncClient() as client:
        app.state.analysis_service = LabelAnalysisService(
            photo_store=PhotoStore(client),
            extractor=GeminiLabelExtractor(client),
        )
        yield


async def label_scan_error_handler(request: Request, exc: LabelScanError) -> JSONResponse:
    logger.error("analyze-label error: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
        message = f"Invalid request: {where}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Label Scan API",
        version=settings.APP_VERSION,
        description="Extracts agrochemical label data from a photo (Supabase Storage + Gemini)",
        lifespan=lifespan,
    )

    # ✅ CORS (browser preflight for the functions SDK)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    app.add_exception_handler(LabelScanError, label_scan_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # ✅ Mount routers
    app.include_router(meta_router)
    app.include_router(analyze_router)
    # Same handler at the path the mobile client invokes.
    app.include_router(analyze_router, prefix="/functions/v1")

    return app


app = create_app()
