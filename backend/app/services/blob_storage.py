"""Azure Blob Storage for employee photos and documents."""

from __future__ import annotations

import logging
from urllib.parse import unquote, urlparse

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from app.core.config import Settings

logger = logging.getLogger(__name__)


class BlobStorageError(Exception):
    pass


class BlobStorageService:
    def __init__(self) -> None:
        self.client: BlobServiceClient | None = None
        self.container = None
        self.container_name = ""
        self.initialized = False

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        if not settings.AZURE_STORAGE_CONNECTION_STRING:
            logger.warning("Azure Storage connection string missing — BlobStorageService not initialized")
            return

        self.client = BlobServiceClient.from_connection_string(settings.AZURE_STORAGE_CONNECTION_STRING)
        self.container_name = settings.AZURE_STORAGE_CONTAINER
        self.container = self.client.get_container_client(self.container_name)
        self.initialized = True
        logger.info("BlobStorageService initialized (container=%s)", self.container_name)

    async def close(self) -> None:
        if self.client:
            await self.client.close()
        self.client = None
        self.container = None
        self.initialized = False

    def _require_container(self):
        if not self.initialized or self.container is None:
            raise BlobStorageError("Blob storage not initialized")
        return self.container

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        container = self._require_container()
        blob = container.get_blob_client(path)
        try:
            await blob.upload_blob(
                data,
                overwrite=False,
                content_settings=ContentSettings(content_type=content_type),
            )
        except Exception as e:
            raise BlobStorageError(f"Upload to {path} failed: {e}") from e
        logger.info("Uploaded %d bytes to %s", len(data), path)
        return blob.url

    def blob_name_from_url(self, url: str) -> str | None:
        """Blob path inside our container, or None when the URL points elsewhere."""
        if not url or not url.startswith(("https://", "http://")):
            return None
        container = self._require_container()
        container_path = urlparse(container.url).path.rstrip("/") + "/"
        parsed = urlparse(url)
        if parsed.netloc != urlparse(container.url).netloc or not parsed.path.startswith(container_path):
            return None
        return unquote(parsed.path[len(container_path):]) or None

    async def download_by_url(self, url: str) -> bytes:
        name = self.blob_name_from_url(url)
        if name is None:
            raise BlobStorageError(f"Not a document URL of this storage account: {url}")
        container = self._require_container()
        try:
            stream = await container.get_blob_client(name).download_blob()
            return await stream.readall()
        except Exception as e:
            raise BlobStorageError(f"Download of {name} failed: {e}") from e

    async def delete_by_url(self, url: str) -> bool:
        """Delete the blob behind ``url``.

        Returns False when there was nothing to delete (foreign URL or blob
        already gone). Any other failure propagates to the caller.
        """
        name = self.blob_name_from_url(url)
        if name is None:
            logger.warning("Invalid or foreign file URL, skipping deletion: %s", url)
            return False
        container = self._require_container()
        try:
            await container.delete_blob(name)
        except ResourceNotFoundError:
            logger.warning("Could not delete %s because it was not found", name)
            return False
        logger.info("Deleted blob %s", name)
        return True

    async def check_connection(self) -> bool:
        if not self.initialized or self.container is None:
            return False
        try:
            await self.container.get_container_properties()
            return True
        except Exception:
            logger.exception("Blob storage connection check failed")
            return False


blob_storage = BlobStorageService()
