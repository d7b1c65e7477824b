# vidtube/services/media.py
"""
Media host client (Cloudinary) and temporary staging of multipart uploads.

Flow for every uploaded image:
  1. stash_upload() copies the incoming UploadFile to UPLOAD_TEMP_DIR
  2. upload_on_cloudinary() pushes the staged file to Cloudinary
  3. the staged file is removed whether the upload succeeded or not
"""
import hashlib
import logging
import shutil
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Optional

import httpx
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from vidtube.config import settings

logger = logging.getLogger("uvicorn.error")


def _copy_to_disk(source: BinaryIO, path: Path) -> None:
    with path.open("wb") as out:
        shutil.copyfileobj(source, out)


@asynccontextmanager
async def stash_upload(upload: UploadFile) -> AsyncIterator[str]:
    """
    Write an UploadFile to the temp directory and yield its path.

    The file gets a random name (keeping the original extension) so that
    concurrent uploads with the same filename never collide. It is unlinked
    when the block exits, including when the block raises. Disk work runs in
    the threadpool.
    """
    temp_dir = Path(settings.upload_temp_dir)
    temp_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(upload.filename or "").suffix.lower()
    path = temp_dir / f"{uuid.uuid4().hex}{suffix}"
    try:
        await run_in_threadpool(_copy_to_disk, upload.file, path)
        yield str(path)
    finally:
        await run_in_threadpool(path.unlink, missing_ok=True)


def _sign_params(params: dict, api_secret: str) -> str:
    """Cloudinary signature: sha1 of the sorted `k=v&...` string followed by the secret."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


async def upload_on_cloudinary(local_path: Optional[str], client: Optional[httpx.AsyncClient] = None) -> Optional[dict]:
    """
    Upload a local file to Cloudinary (resource_type auto).

    Args:
        local_path: Path of the staged file; None/empty means nothing to upload
        client: Optional httpx client (the caller keeps ownership)

    Returns:
        Cloudinary's JSON response (with "url" / "secure_url"), or None if
        there was nothing to upload, credentials are missing, or the upload failed.
    """
    if not local_path:
        return None
    cloud = settings.cloudinary_cloud_name
    api_key = settings.cloudinary_api_key
    api_secret = settings.cloudinary_api_secret
    if not (cloud and api_key and api_secret):
        logger.warning("[media] Cloudinary credentials are not configured, skip upload of %s", local_path)
        return None

    url = f"{settings.cloudinary_api_base}/{cloud}/auto/upload"
    params = {"timestamp": str(int(time.time()))}
    data = {**params, "api_key": api_key, "signature": _sign_params(params, api_secret)}

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=None)
    try:
        content = await run_in_threadpool(Path(local_path).read_bytes)
        resp = await client.post(url, data=data, files={"file": (Path(local_path).name, content)})
        resp.raise_for_status()
        payload = resp.json()
    except (httpx.HTTPError, OSError, ValueError) as exc:
        logger.error("[media] upload of %s failed: %s", local_path, exc)
        return None
    finally:
        if owns_client:
            await client.aclose()

    logger.info("[media] file uploaded to Cloudinary: %s", payload.get("url"))
    return payload


async def upload_file(upload: Optional[UploadFile]) -> Optional[dict]:
    """Stage an UploadFile and push it to Cloudinary. The staged copy is always removed."""
    if upload is None:
        return None
    async with stash_upload(upload) as local_path:
        return await upload_on_cloudinary(local_path)
