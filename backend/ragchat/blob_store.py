from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient

from .config import AzureBlobOptions
from .logging_utils import get_logger

log = get_logger(__name__)

OCTET_STREAM = "application/octet-stream"


class BlobFetchError(RuntimeError):
    pass


@dataclass
class BlobContent:
    chunks: Iterator[bytes]
    content_type: str


class BlobImageStore:
    def __init__(self, blob: AzureBlobOptions) -> None:
        self.blob = blob
        self._service: BlobServiceClient | None = None

    def _service_client(self) -> BlobServiceClient:
        if self._service is None:
            if self.blob.connection_string:
                self._service = BlobServiceClient.from_connection_string(self.blob.connection_string)
            else:
                self._service = BlobServiceClient(
                    account_url=self.blob.account_url,
                    credential=DefaultAzureCredential(exclude_interactive_browser_credential=True),
                )
        return self._service

    def fetch(self, blob_path: str) -> BlobContent:
        try:
            container = self._service_client().get_container_client(self.blob.container)
            downloader = container.get_blob_client(blob_path).download_blob()
            content_type = downloader.properties.content_settings.content_type or OCTET_STREAM
            return BlobContent(chunks=downloader.chunks(), content_type=content_type)
        except Exception as e:
            raise BlobFetchError(f"Failed to read blob {blob_path!r}: {e}") from e

    def close(self) -> None:
        if self._service is not None:
            self._service.close()
            self._service = None
