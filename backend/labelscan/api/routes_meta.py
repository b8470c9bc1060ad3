import os
from fastapi import APIRouter

from labelscan.core.config import settings

router = APIRouter(tags=["meta"])


# ✅ Root (GET /)
@router.get("/")
def root():
    return {
        "name": "Label Scan API",
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "version": "/version",
        "analyze": "/analyze-label",
    }


# ✅ Health Check (GET /health)
@router.get("/health")
def health():
    return {"ok": True}


# ✅ Version endpoint (GET /version)
@router.get("/version")
def version():
    return {
        "version": settings.APP_VERSION,
        "build": settings.BUILD_ID,
        "render_git_commit": os.environ.get("RENDER_GIT_COMMIT"),
    }
