"""
Object storage client for the vehicle-images and incident-photos buckets.

Talks to the hosted storage REST API with httpx. Uploads go through the
storage circuit breaker; public URLs are computed locally.
"""

import logging
from typing import Optional
import httpx
from backend.app.core.config import settings
from backend.app.core.exceptions import ExternalServiceError
from backend.app.core.reliability import storage_circuit_breaker, CircuitOpenError

logger = logging.getLogger(__name__)


class StorageClient:
    """Thin wrapper around httpx so tests can swap in a MockTransport."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.service_key = service_key if service_key is not None else settings.supabase_service_key
        self.transport = transport

    def public_url(self, bucket: str, path: Optional[str]) -> Optional[str]:
        """
        Public URL of an object.

        Absolute URLs (already resolved, or hosted elsewhere) pass through.
        """
        if not path:
            return None
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path.lstrip('/')}"

    def _client(self) -> httpx.AsyncClient:
        headers = {}
        if self.service_key:
            headers["Authorization"] = f"Bearer {self.service_key}"
            headers["apikey"] = self.service_key
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=settings.http_timeout_seconds,
            transport=self.transport,
        )

    async def _post_object(self, bucket: str, path: str, content: bytes, content_type: str) -> None:
        async with self._client() as client:
            response = await client.post(
                f"/storage/v1/object/{bucket}/{path}",
                content=content,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
            response.raise_for_status()

    async def upload(self, bucket: str, path: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Upload an object and return its public URL.

        Raises:
            ExternalServiceError: If storage rejects the upload or is unreachable
        """
        try:
            await storage_circuit_breaker.call(self._post_object, bucket, path, content, content_type)
        except CircuitOpenError:
            raise ExternalServiceError("storage", "Storage temporarily unavailable")
        except httpx.HTTPError as exc:
            logger.warning("Upload of %s/%s failed: %s", bucket, path, exc)
            raise ExternalServiceError("storage", "Upload failed")

        return self.public_url(bucket, path)


def get_storage_client() -> StorageClient:
    """FastAPI dependency; overridden in tests."""
    return StorageClient()
