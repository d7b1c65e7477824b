"""
Unit tests for services.media.
Tests staging of uploads (always cleaned up) and the Cloudinary client.
"""
import hashlib
import threading
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from fastapi import UploadFile

from vidtube.config import settings
from vidtube.services import media


@pytest.fixture
def temp_dir(monkeypatch, tmp_path):
    target = tmp_path / "temp"
    monkeypatch.setattr(settings, "upload_temp_dir", str(target))
    return target


@pytest.fixture
def cloudinary_credentials(monkeypatch):
    monkeypatch.setattr(settings, "cloudinary_cloud_name", "demo")
    monkeypatch.setattr(settings, "cloudinary_api_key", "key-123")
    monkeypatch.setattr(settings, "cloudinary_api_secret", "secret-456")


def _upload(name: str = "avatar.PNG", content: bytes = b"fake-image") -> UploadFile:
    return UploadFile(file=BytesIO(content), filename=name)


@pytest.mark.asyncio
class TestStashUpload:
    async def test_file_exists_inside_block_and_is_removed_after(self, temp_dir):
        async with media.stash_upload(_upload(content=b"hello")) as path:
            staged = Path(path)
            assert staged.exists()
            assert staged.read_bytes() == b"hello"
            assert staged.suffix == ".png"
            assert staged.parent == temp_dir
        assert not staged.exists()

    async def test_file_is_removed_when_block_raises(self, temp_dir):
        with pytest.raises(RuntimeError):
            async with media.stash_upload(_upload()) as path:
                staged = Path(path)
                raise RuntimeError("upload exploded")
        assert not staged.exists()
        assert list(temp_dir.iterdir()) == []

    async def test_same_filename_gets_distinct_paths(self, temp_dir):
        async with media.stash_upload(_upload("a.png")) as first, media.stash_upload(_upload("a.png")) as second:
            assert first != second

    async def test_copy_runs_off_the_event_loop_thread(self, monkeypatch, temp_dir):
        loop_thread = threading.get_ident()
        copy_threads = []
        original_copy = media._copy_to_disk

        def recording_copy(source, path):
            copy_threads.append(threading.get_ident())
            original_copy(source, path)

        monkeypatch.setattr(media, "_copy_to_disk", recording_copy)
        async with media.stash_upload(_upload(content=b"big")) as path:
            assert Path(path).read_bytes() == b"big"

        assert len(copy_threads) == 1
        assert copy_threads[0] != loop_thread


class TestSignature:
    def test_signature_is_sha1_of_sorted_params_and_secret(self):
        expected = hashlib.sha1(b"a=1&timestamp=42secret").hexdigest()
        assert media._sign_params({"timestamp": "42", "a": "1"}, "secret") == expected


@pytest.mark.asyncio
class TestUploadOnCloudinary:
    async def test_empty_path_returns_none(self):
        assert await media.upload_on_cloudinary(None) is None
        assert await media.upload_on_cloudinary("") is None

    async def test_missing_credentials_returns_none(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "cloudinary_cloud_name", None)
        local = tmp_path / "x.png"
        local.write_bytes(b"x")
        assert await media.upload_on_cloudinary(str(local)) is None

    async def test_successful_upload_returns_payload(self, cloudinary_credentials, tmp_path):
        local = tmp_path / "x.png"
        local.write_bytes(b"image-bytes")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, json={"url": "http://res.cloudinary.com/demo/x.png",
                                             "secure_url": "https://res.cloudinary.com/demo/x.png"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            payload = await media.upload_on_cloudinary(str(local), client=client)

        assert payload["url"] == "http://res.cloudinary.com/demo/x.png"
        assert seen["url"] == "https://api.cloudinary.com/v1_1/demo/auto/upload"
        assert b"image-bytes" in seen["body"]
        assert b"key-123" in seen["body"]
        assert b"secret-456" not in seen["body"]

    async def test_failed_upload_returns_none(self, cloudinary_credentials, tmp_path):
        local = tmp_path / "x.png"
        local.write_bytes(b"image-bytes")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": {"message": "boom"}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            assert await media.upload_on_cloudinary(str(local), client=client) is None

    async def test_vanished_staged_file_returns_none(self, cloudinary_credentials, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("nothing should be sent")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            assert await media.upload_on_cloudinary(str(tmp_path / "gone.png"), client=client) is None

    async def test_upload_file_cleans_up_on_success_and_failure(self, monkeypatch, temp_dir):
        results = iter([{"url": "http://res.cloudinary.com/demo/ok.png"}, None])

        async def fake_upload(local_path, client=None):
            assert Path(local_path).exists()
            return next(results)

        monkeypatch.setattr(media, "upload_on_cloudinary", fake_upload)

        assert (await media.upload_file(_upload()))["url"].endswith("ok.png")
        assert list(temp_dir.iterdir()) == []
        assert await media.upload_file(_upload()) is None
        assert list(temp_dir.iterdir()) == []

    async def test_upload_file_without_upload_returns_none(self):
        assert await media.upload_file(None) is None
