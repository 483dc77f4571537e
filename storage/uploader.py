"""Validate uploaded images and push them to the configured storage backend."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import BadRequest

from .abstract_storage import AbstractStorage
from .gcs_storage import GCSStorage
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)

MAX_IMAGE_SIZE_DEFAULT = 5 * 1024 * 1024  # 5 MB
ALLOWED_EXTENSIONS_DEFAULT = {"jpeg", "jpg", "png"}
ALLOWED_MIMETYPES_DEFAULT = {"image/jpeg", "image/png"}


def _normalize(values, default: set[str], *, strip_dot: bool = False) -> set[str]:
    if not values:
        return set(default)
    if isinstance(values, str):
        values = values.split(",")

    normalized: set[str] = set()
    for raw in values:
        if not isinstance(raw, str):
            continue
        item = raw.strip().lower()
        if strip_dot:
            item = item.lstrip(".")
        if item:
            normalized.add(item)
    return normalized or set(default)


def build_storage(config: Mapping) -> AbstractStorage:
    """Construct the backend named by ``STORAGE_BACKEND``."""

    backend = (config.get("STORAGE_BACKEND") or "gcs").lower()
    if backend == "local":
        return LocalStorage(
            config.get("UPLOAD_DIR") or "uploads",
            config.get("UPLOAD_BASE_URL") or "/uploads",
        )
    if backend == "gcs":
        return GCSStorage(
            config.get("GCS_BUCKET"),
            project=config.get("GCS_PROJECT_ID"),
            credentials_file=config.get("GCS_CREDENTIALS_FILE"),
            make_public=bool(config.get("GCS_MAKE_PUBLIC", True)),
        )
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r}")


class ImageUploader:
    """Checks image type and size, then stores each file under a unique key."""

    def __init__(
        self,
        storage: AbstractStorage,
        *,
        max_size: int = MAX_IMAGE_SIZE_DEFAULT,
        allowed_extensions: Iterable[str] | str | None = None,
        allowed_mimetypes: Iterable[str] | str | None = None,
        prefix: str = "equipment",
    ):
        self.storage = storage
        self.max_size = max_size
        self.allowed_extensions = _normalize(
            allowed_extensions, ALLOWED_EXTENSIONS_DEFAULT, strip_dot=True
        )
        if "jpeg" in self.allowed_extensions:
            self.allowed_extensions.add("jpg")
        if "jpg" in self.allowed_extensions:
            self.allowed_extensions.add("jpeg")
        self.allowed_mimetypes = _normalize(allowed_mimetypes, ALLOWED_MIMETYPES_DEFAULT)
        self.prefix = prefix.strip("/")

    @classmethod
    def from_config(cls, storage: AbstractStorage, config: Mapping) -> "ImageUploader":
        return cls(
            storage,
            max_size=int(config.get("MAX_IMAGE_SIZE", MAX_IMAGE_SIZE_DEFAULT)),
            allowed_extensions=config.get("ALLOWED_IMAGE_EXTENSIONS"),
            allowed_mimetypes=config.get("ALLOWED_IMAGE_MIMETYPES"),
        )

    def validate(self, file: FileStorage) -> None:
        if file.filename is None or file.filename.strip() == "":
            raise BadRequest("Each image must have a filename.")

        extension = Path(file.filename).suffix.lower().lstrip(".")
        mimetype = (file.mimetype or "").lower()
        if extension not in self.allowed_extensions or mimetype not in self.allowed_mimetypes:
            raise BadRequest("Only JPEG, JPG, and PNG images are allowed.")

        file.stream.seek(0, os.SEEK_END)
        size = file.stream.tell()
        file.stream.seek(0)
        if size > self.max_size:
            limit_mb = self.max_size / (1024 * 1024)
            raise BadRequest(f"Image {file.filename} exceeds the maximum size of {limit_mb:g}MB.")

    def _build_key(self, original: str) -> str:
        suffix = Path(original).suffix.lower()
        return f"{self.prefix}/{uuid.uuid4().hex}{suffix}"

    def upload(self, files: Sequence[FileStorage]) -> list[str]:
        """Validate all files, then store them and return their URLs in order."""

        for file in files:
            self.validate(file)

        urls = []
        try:
            for file in files:
                key = self._build_key(file.filename or "")
                urls.append(self.storage.save(file, key, file.mimetype))
                logger.info("Stored image %s as %s", file.filename, key)
        except Exception:
            # Partial batch: remove what was already stored before failing.
            self.discard(urls)
            raise
        return urls

    def discard(self, urls: Iterable[str]) -> None:
        """Delete previously stored images, logging rather than raising on failure."""

        for url in urls:
            if not self.storage.delete(url):
                logger.warning("Could not delete stored image %s", url)
