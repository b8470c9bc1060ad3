import json
import re
from typing import Any, Dict, Optional

import httpx

from labelscan.core.config import settings
from labelscan.core.errors import UpstreamError
from labelscan.core.logging import get_logger
from labelscan.core.photo import DecodedPhoto

logger = get_logger(__name__)

# Service endpoint for Gemini API (v1beta)
API_BASE = "https://generativelanguage.googleapis.com/v1beta"

# Bump when the wording below changes; the response format depends on it.
PROMPT_VERSION = "2025-01-label-v1"

EXTRACTION_PROMPT = """You are analyzing a photo of an agricultural chemical product label (pesticide, herbicide, or fertilizer).

1. First, identify the product from the label image - extract the EPA registration number, product name, and manufacturer.
2. Then search the web for complete label data for this product.
3. Return the data as JSON with this exact structure:

{
  "epa_registration_number": "string or null",
  "product_name": "string or null",
  "manufacturer": "string or null",
  "signal_word": "Danger or Warning or Caution or null",
  "active_ingredients": [{"name": "string", "concentration": "string"}],
  "precautionary_statements": ["string"],
  "first_aid": {"eyes": "string", "skin": "string", "ingestion": "string", "inhalation": "string"},
  "storage_and_disposal": "string or null"
}

Return ONLY valid JSON. No markdown fences, no extra text. Every field must be present; use null for any field you cannot determine. If you cannot identify the product, return all fields as null."""


def _redact_key(s: str) -> str:
    """
    Redact 'key=...' in URLs or text so we never leak API keys in logs/responses.
    """
    if not s:
        return s
    # Replace key=XXXXX (until & or whitespace)
    return re.sub(r"(key=)([^&\s]+)", r"\1REDACTED", s)


def _normalize_model(name: str) -> str:
    name = (name or "").strip()
    return name if name.startswith("models/") else f"models/{name}"


def build_payload(photo: DecodedPhoto, prompt: str = EXTRACTION_PROMPT) -> Dict[str, Any]:
    """generateContent body: instructions + inline image, with Google Search grounding."""
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": prompt},
                    {
                        "inline_data": {
                            "mime_type": photo.mime_type,
                            "data": photo.b64,
                        }
                    },
                ],
            }
        ],
        "tools": [{"google_search": {}}],
    }


def response_text(payload: Dict[str, Any]) -> str:
    """
    Join the text parts of the first candidate.

    Grounded responses can split the answer over several parts; missing
    candidates or parts give an empty string.
    """
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    if not isinstance(parts, list):
        return ""
    return "".join(p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))


class GeminiLabelExtractor:
    """
    Single synchronous call to Gemini generateContent for one label photo.

    No retries and no fallback model: any failure surfaces as UpstreamError.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
        api_base: str = API_BASE,
    ) -> None:
        self.client = client
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = _normalize_model(model or settings.GEMINI_MODEL)
        self.timeout_s = timeout_s if timeout_s is not None else settings.GEMINI_TIMEOUT_SECONDS
        self.api_base = api_base.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.api_base}/{self.model}:generateContent"

    async def extract(self, photo: DecodedPhoto) -> Dict[str, Any]:
        """
        Send the label photo to Gemini and return the raw response JSON.

        Raises:
            UpstreamError: API key missing, timeout, transport failure,
                non-2xx status, or a body that is not a JSON object.
        """
        api_key = (self.api_key or "").strip()
        if not api_key:
            raise UpstreamError("GEMINI_API_KEY not configured")

        payload = build_payload(photo)

        try:
            r = await self.client.post(
                self.url,
                params={"key": api_key},
                json=payload,
                timeout=self.timeout_s,
            )
        except httpx.TimeoutException:
            raise UpstreamError(f"Gemini API error: request timed out after {self.timeout_s:g}s")
        except httpx.HTTPError as e:
            raise UpstreamError(f"Gemini API error: {type(e).__name__}: {_redact_key(str(e))}")

        logger.info("Gemini %s responded %s (prompt %s)", self.model, r.status_code, PROMPT_VERSION)

        if not r.is_success:
            safe_body = _redact_key(r.text)[:2000]
            raise UpstreamError(
                f"Gemini API error: {r.status_code} {safe_body}",
                upstream_status=r.status_code,
                body=safe_body,
            )

        try:
            data = r.json()
        except json.JSONDecodeError:
            raise UpstreamError(
                f"Gemini API error: non-JSON response body; raw={_redact_key(r.text)[:2000]}",
                upstream_status=r.status_code,
            )
        if not isinstance(data, dict):
            raise UpstreamError(
                f"Unexpected Gemini response shape; raw={json.dumps(data)[:2000]}",
                upstream_status=r.status_code,
            )
        return data
