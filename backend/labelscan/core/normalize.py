import json
from typing import Any, Dict, Iterator, Optional

import pydantic

from labelscan.core.errors import NormalizationFallback
from labelscan.core.logging import get_logger
from labelscan.schemas.analyze import AnalyzeStatus, LabelData

logger = get_logger(__name__)


def iter_json_objects(text: str) -> Iterator[str]:
    """
    Yield each balanced {...} substring of free-form model output, in order.

    Scans brace depth while skipping over JSON string literals, so braces
    quoted inside values (e.g. a precautionary statement) do not end the
    object early. After every candidate, balanced or not, scanning resumes
    at the next '{' after its opening brace.
    """
    if not text:
        return

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:i + 1]
                    break
        start = text.find("{", start + 1)


def find_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} substring, or None."""
    return next(iter_json_objects(text), None)


def _first_json_object(text: str) -> Dict[str, Any]:
    found_braces = False
    last_error = None
    for candidate in iter_json_objects(text):
        found_braces = True
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(obj, dict):
            return obj

    if not found_braces:
        raise NormalizationFallback("no JSON object found in model output", text)
    raise NormalizationFallback(f"malformed JSON in model output: {last_error}", text)


def _validate_fields(obj: Dict[str, Any]) -> LabelData:
    """
    Validate the parsed object, nulling only the fields that fail.

    One mistyped field (say a bare string list for active_ingredients) must
    not discard a product name or registration number that parsed fine.
    """
    try:
        return LabelData.model_validate(obj)
    except pydantic.ValidationError as e:
        bad = {err["loc"][0] for err in e.errors() if err.get("loc")}
        logger.warning("Dropping label fields that do not match the schema: %s", ", ".join(sorted(map(str, bad))))

    kept = {k: v for k, v in obj.items() if k not in bad}
    try:
        return LabelData.model_validate(kept)
    except pydantic.ValidationError as e:
        raise NormalizationFallback(f"model JSON does not match label schema: {e.error_count()} error(s)", json.dumps(obj))


def _load_label(text: str) -> LabelData:
    return _validate_fields(_first_json_object(text))


def parse_label_data(text: str) -> LabelData:
    """
    Parse model output into LabelData, failing open.

    An unparseable answer yields an all-null LabelData (status unidentified)
    instead of failing the request; the raw text is logged for diagnosis.
    """
    try:
        return _load_label(text)
    except NormalizationFallback as fb:
        logger.warning("Failed to parse Gemini response as JSON (%s): %r", fb.reason, fb.raw_text)
        return LabelData()


def derive_status(label: LabelData) -> AnalyzeStatus:
    """identified iff the registration number or the product name is non-empty."""
    if label.epa_registration_number or label.product_name:
        return AnalyzeStatus.identified
    return AnalyzeStatus.unidentified
