"""Storage abstraction layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import IO


class AbstractStorage(ABC):
    """Interface for blob storage backends."""

    @abstractmethod
    def save(self, file_obj: IO[bytes], key: str, content_type: str) -> str:
        """Persist a file under ``key`` and return its public URL."""

    @abstractmethod
    def delete(self, url_or_key: str) -> bool:
        """Remove a stored file. Return False when nothing was removed."""
