from __future__ import annotations

import base64
import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from labelscan.core.gemini import GeminiLabelExtractor
from labelscan.core.storage import PhotoStore
from labelscan.services.analysis_service import LabelAnalysisService

SUPABASE_URL = "https://proj.supabase.co"
SERVICE_KEY = "service-role-key"
GEMINI_KEY = "secret-gemini-key"

# Smallest header a JPEG sniffer needs, followed by filler bytes.
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 32
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

WEEDAWAY_JSON = {
    "epa_registration_number": "12345-67",
    "product_name": "WeedAway",
    "manufacturer": None,
    "signal_word": "Warning",
    "active_ingredients": [{"name": "Glyphosate", "concentration": "41%"}],
    "precautionary_statements": ["Keep out of reach of children"],
    "first_aid": {"eyes": "Rinse with water", "skin": None, "ingestion": None, "inhalation": None},
    "storage_and_disposal": "Store in original container",
}


def gemini_payload(text: str) -> Dict[str, Any]:
    return {
        "candidates": [{"content": {"role": "model", "parts": [{"text": text}]}, "finishReason": "STOP"}],
        "modelVersion": "gemini-2.0-flash",
    }


class FakeBackend:
    """MockTransport handler standing in for Supabase Storage and Gemini."""

    def __init__(
        self,
        *,
        model_text: str = "",
        storage_status: int = 200,
        gemini_status: int = 200,
        gemini_body: Optional[Dict[str, Any]] = None,
        gemini_exc: Optional[Callable[[httpx.Request], Exception]] = None,
    ) -> None:
        self.model_text = model_text
        self.storage_status = storage_status
        self.gemini_status = gemini_status
        self.gemini_body = gemini_body
        self.gemini_exc = gemini_exc
        self.storage_requests: List[httpx.Request] = []
        self.gemini_requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "proj.supabase.co":
            self.storage_requests.append(request)
            if self.storage_status != 200:
                return httpx.Response(self.storage_status, json={"statusCode": str(self.storage_status), "error": "Forbidden", "message": "new row violates row-level security policy"})
            return httpx.Response(200, json={"Key": request.url.path.split("/object/", 1)[1]})

        self.gemini_requests.append(request)
        if self.gemini_exc is not None:
            raise self.gemini_exc(request)
        if self.gemini_status != 200:
            return httpx.Response(self.gemini_status, json={"error": {"code": self.gemini_status, "message": "Resource has been exhausted"}})
        body = self.gemini_body if self.gemini_body is not None else gemini_payload(self.model_text)
        return httpx.Response(200, json=body)

    @property
    def gemini_json(self) -> Dict[str, Any]:
        return json.loads(self.gemini_requests[0].content)


def build_service(backend: FakeBackend) -> LabelAnalysisService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    return LabelAnalysisService(
        photo_store=PhotoStore(client, base_url=SUPABASE_URL, service_key=SERVICE_KEY, bucket="chemical-photos"),
        extractor=GeminiLabelExtractor(client, api_key=GEMINI_KEY, model="gemini-2.0-flash", timeout_s=5),
    )


@pytest.fixture
def jpeg_b64() -> str:
    return base64.b64encode(JPEG_BYTES).decode("ascii")
