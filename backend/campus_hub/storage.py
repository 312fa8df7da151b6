"""Local object storage with named buckets and public URLs.

Objects live under `STORAGE_DIR/<bucket>/<key>` and are served read-only
by the application under `/storage`. Keys follow
`<user_id>/<timestamp_ms>-<index>-<nonce>.<ext>` so every upload gets a fresh name;
existing objects are never overwritten.
"""

from __future__ import annotations

import io
import logging
import os
import time
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .config import settings

ACCOMMODATION_BUCKET = "accommodation-images"
MARKETPLACE_BUCKET = "marketplace-images"
AVATAR_BUCKET = "avatars"
BUCKETS = (ACCOMMODATION_BUCKET, MARKETPLACE_BUCKET, AVATAR_BUCKET)

IMAGE_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "GIF": "gif", "WEBP": "webp"}

_LOGGER = logging.getLogger("campus_hub.storage")


class UnsupportedMediaError(ValueError):
    """Raised when an upload is not a recognised image."""


def get_storage_root() -> Path:
    """Return the base directory holding all buckets."""
    raw = os.getenv("STORAGE_DIR", "")
    if raw.strip():
        return Path(raw).expanduser().resolve()
    return (Path(__file__).resolve().parents[1] / "data" / "storage").resolve()


def _bucket_dir(bucket: str) -> Path:
    if bucket not in BUCKETS:
        raise ValueError(f"unknown bucket: {bucket}")
    return get_storage_root() / bucket


def _safe_key(key: str) -> PurePosixPath:
    path = PurePosixPath(key)
    if not key or path.is_absolute() or any(part in ("", ".", "..") for part in path.parts) or "\\" in key:
        raise ValueError("invalid object path")
    return path


def sniff_image(payload: bytes) -> str:
    """Return the file extension for an image payload.

    Raises `UnsupportedMediaError` when Pillow cannot identify the bytes
    as one of the accepted formats.
    """
    try:
        with Image.open(io.BytesIO(payload)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise UnsupportedMediaError("unsupported file content; expected an image")
    ext = IMAGE_EXTENSIONS.get(fmt or "")
    if not ext:
        raise UnsupportedMediaError(f"unsupported image format: {fmt}")
    return ext


def make_object_key(user_id: int, ext: str, index: int = 0) -> str:
    return f"{user_id}/{int(time.time() * 1000)}-{index}-{uuid.uuid4().hex[:8]}.{ext}"


def upload(bucket: str, key: str, payload: bytes) -> str:
    """Write `payload` to `bucket/key` and return the key."""
    if not payload:
        raise ValueError("empty upload")
    target = _bucket_dir(bucket) / Path(*_safe_key(key).parts)
    if target.exists():
        raise ValueError(f"object already exists: {bucket}/{key}")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(payload)
    _LOGGER.info("stored %s/%s (%d bytes)", bucket, key, len(payload))
    return key


def public_url(bucket: str, key: str) -> str:
    _bucket_dir(bucket)
    return f"{settings.PUBLIC_BASE_URL}/storage/{bucket}/{_safe_key(key)}"


def object_path_from_url(url: str) -> Optional[tuple]:
    """Split a public URL produced by `public_url` into `(bucket, key)`.

    Returns `None` for URLs that do not point into local storage (for
    example externally hosted images) and for malformed keys.
    """
    prefix = f"{settings.PUBLIC_BASE_URL}/storage/"
    if not url or not url.startswith(prefix):
        return None
    bucket, _, key = url[len(prefix):].partition("/")
    if bucket not in BUCKETS or not key:
        return None
    try:
        _safe_key(key)
    except ValueError:
        return None
    return bucket, key


def is_local_url(url: str) -> bool:
    return bool(url) and url.startswith(f"{settings.PUBLIC_BASE_URL}/storage/")


def owns_key(key: str, owner_id: int) -> bool:
    """Keys are namespaced by the uploading user's id."""
    return PurePosixPath(key).parts[0] == str(owner_id)


def check_owned_urls(urls, owner_id: int) -> None:
    """Raise `ValueError` if a local URL is malformed or not under `owner_id`.

    External URLs are left alone.
    """
    for url in urls or []:
        if not is_local_url(url):
            continue
        loc = object_path_from_url(url)
        if loc is None or not owns_key(loc[1], owner_id):
            raise ValueError(f"image not owned by you: {url}")


def remove(bucket: str, key: str) -> bool:
    """Delete an object; return False when it did not exist."""
    target = _bucket_dir(bucket) / Path(*_safe_key(key).parts)
    if not target.exists():
        return False
    target.unlink()
    _LOGGER.info("removed %s/%s", bucket, key)
    return True


def remove_urls(urls, owner_id: int) -> int:
    """Delete the locally stored objects in `urls` that belong to `owner_id`.

    Other users' objects, external URLs and malformed keys are skipped.
    """
    removed = 0
    for url in urls or []:
        loc = object_path_from_url(url)
        if not loc or not owns_key(loc[1], owner_id):
            continue
        if remove(*loc):
            removed += 1
    return removed


def store_images(bucket: str, user_id: int, payloads: list) -> list:
    """Validate and store image payloads; return their public URLs.

    Every payload is checked before anything is written so a bad file
    does not leave a partial upload behind.
    """
    exts = [sniff_image(p) for p in payloads]
    urls = []
    for idx, (payload, ext) in enumerate(zip(payloads, exts)):
        key = upload(bucket, make_object_key(user_id, ext, idx), payload)
        urls.append(public_url(bucket, key))
    return urls
