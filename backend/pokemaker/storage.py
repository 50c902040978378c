"""Bucketed object storage for drawings and generated artwork."""

import base64
import binascii
import logging
import mimetypes
import re
import secrets
import time
from pathlib import Path

import aiofiles

from pokemaker.core.config import settings

logger = logging.getLogger(__name__)

STORAGE_URL_PREFIX = "/storage"

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,62}$")


class StorageError(Exception):
    """Raised when a blob cannot be accepted or written."""


class ObjectStorage:
    """
    Stores blobs under ``<root>/<bucket>/<key>`` and hands back public URLs.

    The app serves ``root`` at ``/storage`` so every returned URL is directly
    dereferenceable by the browser.
    """

    def __init__(
        self,
        root: Path | str | None = None,
        *,
        public_base_url: str | None = None,
        default_bucket: str | None = None,
        max_bytes: int | None = None,
    ):
        self.root = Path(root or settings.STORAGE_ROOT)
        self.public_base_url = (public_base_url or settings.STORAGE_PUBLIC_BASE_URL).rstrip("/")
        self.default_bucket = default_bucket or settings.STORAGE_DEFAULT_BUCKET
        self.max_bytes = max_bytes or settings.MAX_UPLOAD_BYTES

    @staticmethod
    def _extension(filename: str | None, content_type: str | None) -> str:
        if filename and "." in filename:
            ext = filename.rsplit(".", 1)[1].lower()
            if re.fullmatch(r"[a-z0-9]{1,8}", ext):
                return ext
        if content_type:
            guessed = mimetypes.guess_extension(content_type.split(";")[0].strip())
            if guessed:
                return guessed.lstrip(".")
        return "png"

    @staticmethod
    def _object_key(ext: str) -> str:
        return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}.{ext}"

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.public_base_url}{STORAGE_URL_PREFIX}/{bucket}/{key}"

    async def upload(
        self,
        data: bytes,
        filename: str | None = None,
        *,
        bucket: str | None = None,
        content_type: str | None = None,
    ) -> str:
        bucket = bucket or self.default_bucket
        if not _BUCKET_RE.match(bucket):
            raise StorageError(f"Invalid bucket name: {bucket}")
        if not data:
            raise StorageError("Cannot store an empty file.")
        if len(data) > self.max_bytes:
            raise StorageError(
                f"File is too large ({len(data)} bytes, limit {self.max_bytes})."
            )
        if content_type and not content_type.startswith("image/"):
            raise StorageError(f"Unsupported file type: {content_type}")

        key = self._object_key(self._extension(filename, content_type))
        bucket_dir = self.root / bucket
        bucket_dir.mkdir(parents=True, exist_ok=True)
        path = bucket_dir / key
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Error uploading image to %s: %s", path, e)
            raise StorageError(f"Failed to store image: {e}") from e

        logger.info("Stored %s bytes as %s/%s", len(data), bucket, key)
        return self.public_url(bucket, key)

    def path_for_url(self, url: str) -> Path:
        prefix = f"{self.public_base_url}{STORAGE_URL_PREFIX}/"
        if not url or not url.startswith(prefix):
            raise StorageError(f"Not a stored object: {url}")
        bucket, _, key = url[len(prefix):].partition("/")
        if not _BUCKET_RE.match(bucket) or not key or "/" in key or key.startswith("."):
            raise StorageError(f"Not a stored object: {url}")
        return self.root / bucket / key

    async def read(self, url: str) -> tuple[bytes, str]:
        """Load a previously stored object back, with its guessed content type."""
        path = self.path_for_url(url)
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except OSError as e:
            raise StorageError(f"Failed to read stored image: {e}") from e
        content_type = mimetypes.guess_type(path.name)[0] or "image/png"
        return data, content_type

    async def upload_base64(
        self,
        data_b64: str,
        filename: str | None = None,
        *,
        bucket: str | None = None,
        content_type: str = "image/png",
    ) -> str:
        if "," in data_b64 and data_b64.lstrip().startswith("data:"):
            data_b64 = data_b64.split(",", 1)[1]
        try:
            data = base64.b64decode(data_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise StorageError("Image data is not valid base64.") from e
        return await self.upload(data, filename, bucket=bucket, content_type=content_type)


_storage_instance: ObjectStorage | None = None


def get_storage() -> ObjectStorage:
    """Lazily creates the shared storage so settings overrides apply."""
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = ObjectStorage()
    return _storage_instance
