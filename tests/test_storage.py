"""Tests for storage backends and the image uploader."""

from __future__ import annotations

from io import BytesIO

import pytest
from google.api_core.exceptions import Forbidden, NotFound
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import BadRequest

from storage import GCSStorage, ImageUploader, LocalStorage, build_storage
from utils.errors import StorageError


class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name

    @property
    def public_url(self):
        return f"https://storage.googleapis.com/{self.bucket.name}/{self.name}"

    def upload_from_file(self, stream, content_type=None, rewind=False):
        if self.bucket.fail_uploads:
            raise Forbidden("denied")
        self.bucket.objects[self.name] = (stream.read(), content_type)

    def make_public(self):
        self.bucket.public.add(self.name)

    def delete(self):
        if self.name not in self.bucket.objects:
            raise NotFound("missing")
        del self.bucket.objects[self.name]


class FakeBucket:
    def __init__(self, name):
        self.name = name
        self.objects = {}
        self.public = set()
        self.fail_uploads = False

    def blob(self, name):
        return FakeBlob(self, name)


class FakeClient:
    def __init__(self):
        self.buckets = {}

    def bucket(self, name):
        return self.buckets.setdefault(name, FakeBucket(name))


def _file(data=b"\x89PNG", filename="scan.png", content_type="image/png") -> FileStorage:
    return FileStorage(stream=BytesIO(data), filename=filename, content_type=content_type)


def test_local_storage_save_and_delete(tmp_path):
    storage = LocalStorage(str(tmp_path / "uploads"), "/media/")

    url = storage.save(BytesIO(b"data"), "equipment/a.png", "image/png")

    assert url == "/media/equipment/a.png"
    assert (tmp_path / "uploads" / "equipment" / "a.png").read_bytes() == b"data"
    assert storage.delete(url) is True
    assert storage.delete(url) is False


def test_local_storage_rejects_escaping_keys(tmp_path):
    storage = LocalStorage(str(tmp_path / "uploads"))

    with pytest.raises(ValueError):
        storage.save(BytesIO(b"x"), "../outside.png", "image/png")
    assert storage.delete("../../etc/passwd") is False


def test_gcs_storage_uploads_and_returns_public_url():
    client = FakeClient()
    storage = GCSStorage("medequip-bucket", client=client)

    url = storage.save(_file(b"img"), "equipment/x.png", "image/png")

    bucket = client.buckets["medequip-bucket"]
    assert url == "https://storage.googleapis.com/medequip-bucket/equipment/x.png"
    assert bucket.objects["equipment/x.png"] == (b"img", "image/png")
    assert "equipment/x.png" in bucket.public

    assert storage.delete(url) is True
    assert storage.delete("equipment/x.png") is False


def test_gcs_storage_can_skip_make_public():
    client = FakeClient()
    GCSStorage("b", client=client, make_public=False).save(BytesIO(b"x"), "k.png", "image/png")

    assert client.buckets["b"].public == set()


def test_gcs_failures_become_storage_errors():
    client = FakeClient()
    storage = GCSStorage("b", client=client)
    client.buckets["b"].fail_uploads = True

    with pytest.raises(StorageError) as excinfo:
        storage.save(BytesIO(b"x"), "k.png", "image/png")
    assert excinfo.value.code == 500


def test_gcs_requires_bucket_name():
    with pytest.raises(ValueError):
        GCSStorage("", client=FakeClient())


def test_uploader_validates_before_storing(tmp_path):
    storage = LocalStorage(str(tmp_path))
    uploader = ImageUploader(storage, max_size=10)

    with pytest.raises(BadRequest):
        uploader.upload([_file(b"ok"), _file(b"x" * 11, "big.png")])
    assert list(tmp_path.iterdir()) == []

    urls = uploader.upload([_file(b"one", "a.PNG"), _file(b"two", "b.jpeg", "image/jpeg")])
    assert len(urls) == 2
    assert urls[0].endswith(".png")
    assert urls[1].endswith(".jpeg")
    assert all(url.startswith("/uploads/equipment/") for url in urls)


@pytest.mark.parametrize(
    "file",
    [
        _file(filename=""),
        _file(filename="notes.txt", content_type="text/plain"),
        _file(filename="scan.png", content_type="image/gif"),
        _file(filename="scan.gif", content_type="image/png"),
    ],
)
def test_uploader_rejects_disallowed_files(tmp_path, file):
    uploader = ImageUploader(LocalStorage(str(tmp_path)))

    with pytest.raises(BadRequest):
        uploader.validate(file)


def test_uploader_config_parsing(tmp_path):
    uploader = ImageUploader.from_config(
        LocalStorage(str(tmp_path)),
        {
            "MAX_IMAGE_SIZE": "1024",
            "ALLOWED_IMAGE_EXTENSIONS": ".JPG, png",
            "ALLOWED_IMAGE_MIMETYPES": "image/jpeg",
        },
    )

    assert uploader.max_size == 1024
    assert uploader.allowed_extensions == {"jpg", "jpeg", "png"}
    assert uploader.allowed_mimetypes == {"image/jpeg"}


def test_build_storage(tmp_path):
    local = build_storage({"STORAGE_BACKEND": "local", "UPLOAD_DIR": str(tmp_path)})
    assert isinstance(local, LocalStorage)

    with pytest.raises(ValueError):
        build_storage({"STORAGE_BACKEND": "ftp"})


class FlakyStorage(LocalStorage):
    """Local storage that fails on the n-th save."""

    def __init__(self, upload_dir, fail_on):
        super().__init__(upload_dir)
        self.fail_on = fail_on
        self.saves = 0

    def save(self, file_obj, key, content_type):
        self.saves += 1
        if self.saves == self.fail_on:
            raise StorageError("Upload failed.")
        return super().save(file_obj, key, content_type)


def test_uploader_removes_stored_images_when_a_later_save_fails(tmp_path):
    storage = FlakyStorage(str(tmp_path), fail_on=3)
    uploader = ImageUploader(storage)

    with pytest.raises(StorageError):
        uploader.upload([_file(b"one", "a.png"), _file(b"two", "b.png"), _file(b"three", "c.png")])

    assert storage.saves == 3
    assert list((tmp_path / "equipment").iterdir()) == []
