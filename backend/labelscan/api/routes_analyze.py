from fastapi import APIRouter, Depends

from labelscan.core.errors import LabelScanError
from labelscan.core.logging import get_logger
from labelscan.dependencies import get_analysis_service
from labelscan.schemas.analyze import AnalyzeRequest, AnalyzeResponse, ErrorResponse
from labelscan.services.analysis_service import LabelAnalysisService

logger = get_logger(__name__)

router = APIRouter(tags=["analyze"])


@router.post(
    "/analyze-label",
    response_model=AnalyzeResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def analyze_label(
    body: AnalyzeRequest,
    service: LabelAnalysisService = Depends(get_analysis_service),
) -> AnalyzeResponse:
    # Unexpected errors become a 500 LabelScanError rendered by main.create_app.
    try:
        return await service.analyze(body)
    except LabelScanError:
        raise
    except Exception as e:
        logger.exception("analyze-label unexpected error")
        raise LabelScanError(str(e) or type(e).__name__) from e
