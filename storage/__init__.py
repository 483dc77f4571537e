"""Storage backends."""

from .abstract_storage import AbstractStorage
from .gcs_storage import GCSStorage
from .local_storage import LocalStorage
from .uploader import ImageUploader, build_storage

__all__ = ["AbstractStorage", "GCSStorage", "ImageUploader", "LocalStorage", "build_storage"]
