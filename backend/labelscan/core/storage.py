import uuid
from typing import Optional

import httpx

from labelscan.core.config import settings
from labelscan.core.errors import StorageError
from labelscan.core.logging import get_logger
from labelscan.core.photo import DecodedPhoto

logger = get_logger(__name__)


class PhotoStore:
    """
    Write-once photo uploads to a Supabase Storage bucket (REST API).

    Every call makes exactly one upload attempt; there is no retry.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        bucket: Optional[str] = None,
        cache_control: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.client = client
        self.base_url = (base_url if base_url is not None else settings.SUPABASE_URL).rstrip("/")
        self.service_key = service_key if service_key is not None else settings.SUPABASE_SERVICE_ROLE_KEY
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.cache_control = cache_control or settings.STORAGE_CACHE_CONTROL
        self.timeout_s = timeout_s if timeout_s is not None else settings.STORAGE_TIMEOUT_SECONDS

    @staticmethod
    def new_object_name(photo: DecodedPhoto) -> str:
        return f"{uuid.uuid4()}.{photo.extension}"

    def public_url(self, object_name: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{object_name}"

    async def upload(self, photo: DecodedPhoto) -> str:
        """
        Upload the photo under a fresh UUID key and return its public URL.

        Raises:
            StorageError: storage not configured, transport failure, or the
                write was rejected (quota, permission, backend error).
        """
        if not self.base_url or not self.service_key:
            raise StorageError("Storage upload failed: SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured")

        object_name = self.new_object_name(photo)
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{object_name}"
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": photo.mime_type,
            "Cache-Control": f"max-age={self.cache_control}",
            "x-upsert": "false",
        }

        try:
            r = await self.client.post(url, content=photo.data, headers=headers, timeout=self.timeout_s)
        except httpx.HTTPError as e:
            raise StorageError(f"Storage upload failed: {type(e).__name__}: {e}")

        if not r.is_success:
            raise StorageError(f"Storage upload failed: {r.status_code} {_error_message(r)}")

        logger.info("Stored photo %s/%s (%d bytes)", self.bucket, object_name, len(photo.data))
        return self.public_url(object_name)


def _error_message(r: httpx.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        return r.text[:500]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)[:500]
    return str(data)[:500]
