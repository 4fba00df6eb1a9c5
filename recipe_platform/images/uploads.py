from __future__ import annotations

import os
import uuid
from pathlib import Path

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from recipe_platform.config import Config

from .client import ImageStore, ImageUploadError


def _debug(msg: str) -> None:
    print(f"[images] {msg}")


def has_file(upload: UploadFile | None) -> bool:
    return upload is not None and bool(upload.filename)


async def spool_upload(cfg: Config, upload: UploadFile) -> str:
    """Write a multipart upload to UPLOAD_TMP_DIR and return the local path."""
    tmp_dir = Path(cfg.UPLOAD_TMP_DIR)
    tmp_dir.mkdir(parents=True, exist_ok=True)
    ext = Path(upload.filename or "").suffix.lower()
    path = tmp_dir / f"{uuid.uuid4().hex}{ext}"
    data = await upload.read()
    path.write_bytes(data)
    return str(path)


async def push_image(cfg: Config, images: ImageStore, upload: UploadFile) -> str:
    """Spool the upload, push it to the image store, always remove the temp file.

    The image store client is blocking (requests), so it runs in the thread pool.
    Raises ImageUploadError.
    """
    local_path = await spool_upload(cfg, upload)
    try:
        return await run_in_threadpool(images.upload, local_path)
    except ImageUploadError as e:
        _debug(f"Upload failed for {upload.filename!r}: {e}")
        raise
    finally:
        try:
            os.remove(local_path)
        except FileNotFoundError:
            pass
