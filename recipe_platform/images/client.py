from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

import requests

from recipe_platform.config import Config
from recipe_platform.util.hashing import sha1_hex


def _debug(msg: str) -> None:
    print(f"[images] {msg}")


class ImageUploadError(RuntimeError):
    pass


class ImageStore(Protocol):
    """Takes a local file path, returns a durable public URL (or raises ImageUploadError)."""

    kind: str

    def upload(self, local_path: str) -> str:
        ...


@dataclass
class InMemoryImageStore:
    """Test double: keeps the bytes, hands back a fake URL."""

    base_url: str = "https://images.example.test"
    fail: bool = False
    stored: Dict[str, bytes] = field(default_factory=dict)

    kind = "memory"

    def upload(self, local_path: str) -> str:
        if self.fail:
            raise ImageUploadError("upload disabled")
        with open(local_path, "rb") as f:
            data = f.read()
        ext = os.path.splitext(local_path)[1]
        key = f"{uuid.uuid4().hex}{ext}"
        self.stored[key] = data
        return f"{self.base_url}/{key}"


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    """Cloudinary request signature.

    Docs: sorted `key=value` pairs joined with '&', secret appended, SHA-1.
    """
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return sha1_hex(to_sign + api_secret)


@dataclass
class CloudinaryImageStore:
    cloud_name: str
    api_key: str
    api_secret: str
    folder: str = ""
    base_url: str = "https://api.cloudinary.com/v1_1"
    timeout: float = 60.0

    kind = "cloudinary"

    def upload(self, local_path: str) -> str:
        """Signed upload; resource type is auto-detected by Cloudinary.

        Endpoint: POST {base_url}/{cloud_name}/auto/upload
        """
        url = f"{self.base_url.rstrip('/')}/{self.cloud_name}/auto/upload"
        params: Dict[str, Any] = {"timestamp": int(time.time())}
        if self.folder:
            params["folder"] = self.folder
        data = dict(params)
        data["api_key"] = self.api_key
        data["signature"] = sign_params(params, self.api_secret)

        _debug(f"Uploading {os.path.basename(local_path)} to cloud={self.cloud_name} folder={self.folder or '-'}")
        try:
            with open(local_path, "rb") as f:
                r = requests.post(url, data=data, files={"file": f}, timeout=self.timeout)
        except (OSError, requests.RequestException) as e:
            raise ImageUploadError(f"Cloudinary upload failed: {e}") from e

        if r.status_code != 200:
            raise ImageUploadError(f"Cloudinary upload error {r.status_code}: {r.text}")

        try:
            payload = r.json() if r.text else {}
        except ValueError as e:
            raise ImageUploadError(f"Cloudinary returned a non-JSON body: {r.text[:200]}") from e
        secure_url = None
        if isinstance(payload, dict):
            secure_url = payload.get("secure_url") or payload.get("url")
        if not secure_url:
            raise ImageUploadError(f"Cloudinary returned unexpected payload: {payload}")
        return str(secure_url)


def open_image_store(cfg: Config) -> ImageStore:
    """Cloudinary when CLOUDINARY_CLOUD_NAME is set, else in-memory."""
    if not cfg.CLOUDINARY_CLOUD_NAME:
        _debug("CLOUDINARY_CLOUD_NAME not set; thumbnails are kept in memory")
        return InMemoryImageStore()

    missing: List[str] = [
        k for k in ("CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET") if not getattr(cfg, k)
    ]
    if missing:
        raise RuntimeError(f"Cloudinary selected but {', '.join(missing)} not set")

    return CloudinaryImageStore(
        cloud_name=cfg.CLOUDINARY_CLOUD_NAME,
        api_key=str(cfg.CLOUDINARY_API_KEY),
        api_secret=str(cfg.CLOUDINARY_API_SECRET),
        folder=cfg.CLOUDINARY_FOLDER,
        base_url=cfg.CLOUDINARY_BASE_URL,
        timeout=cfg.CLOUDINARY_TIMEOUT_SECONDS,
    )
