"""Google Cloud Storage backend (the bucket behind Firebase Storage)."""

from __future__ import annotations

import logging
from typing import IO, Optional
from urllib.parse import unquote, urlparse

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage

from utils.errors import StorageError

from .abstract_storage import AbstractStorage

logger = logging.getLogger(__name__)


class GCSStorage(AbstractStorage):
    def __init__(
        self,
        bucket_name: str,
        *,
        client: Optional[storage.Client] = None,
        project: Optional[str] = None,
        credentials_file: Optional[str] = None,
        make_public: bool = True,
    ):
        if not bucket_name:
            raise ValueError("A GCS bucket name must be configured")
        if client is None:
            if credentials_file:
                client = storage.Client.from_service_account_json(
                    credentials_file, project=project
                )
            else:
                client = storage.Client(project=project)
        self.bucket_name = bucket_name
        self.make_public = make_public
        self._client = client
        self._bucket = client.bucket(bucket_name)

    def save(self, file_obj: IO[bytes], key: str, content_type: str) -> str:
        """Upload to GCS and return the blob's public URL."""
        blob = self._bucket.blob(key)
        stream = getattr(file_obj, "stream", file_obj)
        try:
            stream.seek(0)
            blob.upload_from_file(stream, content_type=content_type, rewind=True)
            if self.make_public:
                blob.make_public()
        except GoogleAPIError as exc:
            logger.error("Failed to upload %s to GCS bucket %s: %s", key, self.bucket_name, exc)
            raise StorageError() from exc
        return blob.public_url

    def _key_from(self, url_or_key: str) -> str:
        parsed = urlparse(url_or_key)
        if not parsed.scheme:
            return url_or_key
        path = unquote(parsed.path).lstrip("/")
        prefix = f"{self.bucket_name}/"
        return path[len(prefix):] if path.startswith(prefix) else path

    def delete(self, url_or_key: str) -> bool:
        key = self._key_from(url_or_key)
        try:
            self._bucket.blob(key).delete()
            return True
        except NotFound:
            return False
        except GoogleAPIError as e:
            logger.warning("Failed to delete from GCS (%s): %s", key, e)
            return False
