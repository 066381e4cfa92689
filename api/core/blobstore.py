"""
Blob store clients (uploaded media -> public URL).

Backends:
- cloudinary: signed upload through Cloudinary's REST upload endpoint
- local:      files written under UPLOAD_ROOT and served at /uploads

Select with BLOB_STORE (default: local).
"""

from __future__ import annotations

import hashlib
import secrets
import time
from pathlib import Path
from typing import Any, Protocol

import anyio
import httpx

from . import config

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"

# Cloudinary files audio under the "video" resource type.
_CLOUDINARY_RESOURCE_TYPES = {
    "audio": "video",
    "video": "video",
    "image": "image",
}


# Blob store failures are explicit and separable from other runtime errors.
class BlobStoreError(RuntimeError):
    pass


class BlobStore(Protocol):
    async def upload(self, data: bytes, *, kind: str, filename: str) -> str:
        ...


def _safe_suffix(filename: str) -> str:
    suffix = Path(filename or "").suffix.lower()
    if len(suffix) > 10 or not suffix[1:].isalnum():
        return ""
    return suffix


def _random_name(filename: str) -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{_safe_suffix(filename)}"


def cloudinary_signature(params: dict[str, Any], api_secret: str) -> str:
    """
    Cloudinary signing: sorted `key=value` pairs joined by `&`, secret
    appended, SHA-1 hex digest.
    """
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


class CloudinaryBlobStore:
    def __init__(
        self,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "",
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not cloud_name or not api_key or not api_secret:
            raise BlobStoreError("Cloudinary credentials are not configured.")
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout_s = timeout_s
        self._transport = transport

    def upload_url(self, kind: str) -> str:
        resource_type = _CLOUDINARY_RESOURCE_TYPES.get(kind, "auto")
        return f"{CLOUDINARY_API_BASE}/{self.cloud_name}/{resource_type}/upload"

    async def upload(self, data: bytes, *, kind: str, filename: str) -> str:
        if not data:
            raise BlobStoreError("Refusing to upload an empty file.")

        params: dict[str, Any] = {"timestamp": int(time.time())}
        if self.folder:
            params["folder"] = self.folder
        form = {
            **{k: str(v) for k, v in params.items()},
            "api_key": self.api_key,
            "signature": cloudinary_signature(params, self.api_secret),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                resp = await client.post(
                    self.upload_url(kind),
                    data=form,
                    files={"file": (filename or "upload", data)},
                )
        except httpx.HTTPError as exc:
            raise BlobStoreError(f"Cloudinary upload request failed: {exc}") from exc

        if resp.status_code != 200:
            # Avoid dumping huge bodies; include a small snippet.
            raise BlobStoreError(f"Cloudinary upload failed: {resp.status_code} {resp.text[:300]}")

        body: dict[str, Any] = resp.json()
        url = body.get("secure_url") or body.get("url")
        if not isinstance(url, str) or not url:
            raise BlobStoreError("Cloudinary returned no URL.")
        return url


class LocalBlobStore:
    def __init__(self, root: str, *, public_prefix: str = "/uploads") -> None:
        self.root = Path(root)
        self.public_prefix = public_prefix.rstrip("/")

    async def upload(self, data: bytes, *, kind: str, filename: str) -> str:
        if not data:
            raise BlobStoreError("Refusing to upload an empty file.")

        subdir = f"{kind}s" if kind else "files"
        name = _random_name(filename)
        target = self.root / subdir / name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await anyio.Path(target).write_bytes(data)
        except OSError as exc:
            raise BlobStoreError(f"Local blob write failed: {exc}") from exc
        return f"{self.public_prefix}/{subdir}/{name}"


def blob_store_backend() -> str:
    return config.env_str("BLOB_STORE", "local").lower()


def blob_store_from_env() -> BlobStore:
    backend = blob_store_backend()
    if backend == "cloudinary":
        return CloudinaryBlobStore(
            cloud_name=config.env_str("CLOUDINARY_CLOUD_NAME"),
            api_key=config.env_str("CLOUDINARY_API_KEY"),
            api_secret=config.env_str("CLOUDINARY_API_SECRET"),
            folder=config.env_str("CLOUDINARY_FOLDER", "diary"),
            timeout_s=config.env_float("BLOB_UPLOAD_TIMEOUT_S", 60.0),
        )
    if backend == "local":
        return LocalBlobStore(config.upload_root())
    raise BlobStoreError(f"Unknown BLOB_STORE backend '{backend}'.")
