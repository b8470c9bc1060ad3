import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional

from labelscan.core.errors import ValidationError
from labelscan.schemas.analyze import AnalyzeRequest

_DATA_URL_PREFIX = re.compile(r"^data:[\w/+.-]+;base64,", re.IGNORECASE)

# (magic bytes check, mime type, file extension)
_FORMATS = (
    (lambda b: b.startswith(b"\xff\xd8\xff"), "image/jpeg", "jpg"),
    (lambda b: b.startswith(b"\x89PNG\r\n\x1a\n"), "image/png", "png"),
    (lambda b: b[:4] == b"RIFF" and b[8:12] == b"WEBP", "image/webp", "webp"),
    (lambda b: b[:6] in (b"GIF87a", b"GIF89a"), "image/gif", "gif"),
    (lambda b: b[4:8] == b"ftyp" and b[8:12] in (b"heic", b"heix", b"mif1"), "image/heic", "heic"),
)

# The mobile client always encodes JPEG.
DEFAULT_MIME_TYPE = "image/jpeg"
DEFAULT_EXTENSION = "jpg"


@dataclass(frozen=True)
class DecodedPhoto:
    data: bytes
    mime_type: str
    extension: str
    b64: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def sniff_image_format(data: bytes) -> tuple[str, str]:
    """Return (mime_type, extension) for the image bytes, JPEG when unknown."""
    for matches, mime_type, extension in _FORMATS:
        if matches(data):
            return mime_type, extension
    return DEFAULT_MIME_TYPE, DEFAULT_EXTENSION


def decode_request(request: AnalyzeRequest) -> DecodedPhoto:
    """
    Validate and unpack the inbound payload.

    Accepts plain base64 or a data URL. Coordinates pass through untouched.

    Raises:
        ValidationError: payload missing, empty or not valid base64.
    """
    raw = (request.photoBase64 or "").strip()
    raw = _DATA_URL_PREFIX.sub("", raw)
    if not raw:
        raise ValidationError("photoBase64 is required")

    # Tolerate line-wrapped encoders.
    compact = "".join(raw.split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("photoBase64 is not valid base64")

    if not data:
        raise ValidationError("photoBase64 is required")

    mime_type, extension = sniff_image_format(data)
    return DecodedPhoto(
        data=data,
        mime_type=mime_type,
        extension=extension,
        b64=compact,
        latitude=request.latitude,
        longitude=request.longitude,
    )
