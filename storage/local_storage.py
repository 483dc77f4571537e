"""Local filesystem storage implementation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import IO

from .abstract_storage import AbstractStorage


class LocalStorage(AbstractStorage):
    """Persist files under ``upload_dir`` and serve them from ``base_url``."""

    def __init__(self, upload_dir: str, base_url: str = "/uploads"):
        self.base_directory = Path(upload_dir).resolve()
        self.base_url = base_url.rstrip("/")
        os.makedirs(self.base_directory, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        destination = (self.base_directory / key).resolve()
        if self.base_directory not in destination.parents:
            raise ValueError(f"Storage key escapes the upload directory: {key!r}")
        return destination

    def save(self, file_obj: IO[bytes], key: str, content_type: str) -> str:
        """Save a file and return the URL it is served from."""

        destination = self._resolve(key)
        destination.parent.mkdir(parents=True, exist_ok=True)
        if hasattr(file_obj, "save"):
            file_obj.save(destination)  # type: ignore[attr-defined]
        else:
            with open(destination, "wb") as output:
                output.write(file_obj.read())

        return f"{self.base_url}/{destination.relative_to(self.base_directory).as_posix()}"

    def delete(self, url_or_key: str) -> bool:
        key = url_or_key
        if key.startswith(self.base_url + "/"):
            key = key[len(self.base_url) + 1:]
        try:
            path = self._resolve(key)
        except ValueError:
            return False
        if not path.is_file():
            return False
        path.unlink()
        return True
