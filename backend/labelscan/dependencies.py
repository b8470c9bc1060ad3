"""
Dependency injection helpers for FastAPI endpoints.
"""
from fastapi import Request

from labelscan.services.analysis_service import LabelAnalysisService


def get_analysis_service(request: Request) -> LabelAnalysisService:
    """Fetch the LabelAnalysisService built in the app lifespan."""
    return request.app.state.analysis_service
