from typing import Any, Dict, Optional

from labelscan.core.gemini import GeminiLabelExtractor, response_text
from labelscan.core.logging import get_logger
from labelscan.core.normalize import derive_status, parse_label_data
from labelscan.core.photo import decode_request
from labelscan.core.storage import PhotoStore
from labelscan.schemas.analyze import AnalyzeRequest, AnalyzeResponse, LabelData

logger = get_logger(__name__)


def assemble_response(
    *,
    photo_url: str,
    label: LabelData,
    raw_extraction: Dict[str, Any],
    latitude: Optional[float],
    longitude: Optional[float],
) -> AnalyzeResponse:
    """Merge the pipeline outputs into the client-shaped response."""
    return AnalyzeResponse(
        photo_url=photo_url,
        status=derive_status(label),
        **label.model_dump(),
        raw_extraction=raw_extraction,
        latitude=latitude,
        longitude=longitude,
    )


class LabelAnalysisService:
    """
    decode -> store photo -> prompt model -> normalize -> assemble.

    Steps run strictly in order; the first ValidationError, StorageError or
    UpstreamError aborts the request.
    """

    def __init__(self, *, photo_store: PhotoStore, extractor: GeminiLabelExtractor):
        self.photo_store = photo_store
        self.extractor = extractor

    async def analyze(self, request: AnalyzeRequest) -> AnalyzeResponse:
        photo = decode_request(request)
        logger.info("Analyzing label photo (%d bytes, %s)", len(photo.data), photo.mime_type)

        photo_url = await self.photo_store.upload(photo)

        raw_extraction = await self.extractor.extract(photo)
        label = parse_label_data(response_text(raw_extraction))

        response = assemble_response(
            photo_url=photo_url,
            label=label,
            raw_extraction=raw_extraction,
            latitude=photo.latitude,
            longitude=photo.longitude,
        )
        logger.info("Label analysis finished: status=%s url=%s", response.status.value, photo_url)
        return response
