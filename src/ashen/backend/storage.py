"""File storage buckets under ``.ashen/storage``.

Objects are keyed by ``bucket`` + ``path``.  When encryption is enabled
the bytes are Fernet-encrypted on upload and decrypted on download.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath

from ashen.core.config import get_ashen_dir, load_config
from ashen.core.crypto import decrypt_data, encrypt_data
from ashen.core.errors import BackendError

logger = logging.getLogger(__name__)

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,62}$")


class Storage:
    """Bucketed blob storage on the local filesystem."""

    def __init__(self, project_path: Path | None = None, encrypt: bool | None = None) -> None:
        self._ashen_dir = get_ashen_dir(project_path)
        self._root = self._ashen_dir / "storage"
        if encrypt is None:
            encrypt = load_config(project_path).storage.encrypt
        self._encrypt = encrypt

    def upload(self, bucket: str, path: str, data: bytes, *, upsert: bool = False) -> str:
        """Store *data* at ``bucket/path``.  Returns the object key."""
        target = self._resolve(bucket, path)
        if target.exists() and not upsert:
            raise BackendError(f"Object {bucket}/{path} already exists")
        payload = encrypt_data(data, self._ashen_dir) if self._encrypt else data
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as e:
            raise BackendError(f"Upload of {bucket}/{path} failed: {e}") from e
        logger.debug("Uploaded %d bytes to %s/%s", len(data), bucket, path)
        return f"{bucket}/{path}"

    def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        if not target.exists():
            raise BackendError(f"Object {bucket}/{path} not found")
        try:
            payload = target.read_bytes()
        except OSError as e:
            raise BackendError(f"Download of {bucket}/{path} failed: {e}") from e
        return decrypt_data(payload, self._ashen_dir) if self._encrypt else payload

    def get_public_url(self, bucket: str, path: str) -> str:
        return self._resolve(bucket, path).resolve().as_uri()

    def remove(self, bucket: str, paths: list[str]) -> int:
        """Delete the given objects.  Returns how many existed."""
        removed = 0
        for path in paths:
            target = self._resolve(bucket, path)
            if target.exists():
                target.unlink()
                removed += 1
        return removed

    def _resolve(self, bucket: str, path: str) -> Path:
        if not _BUCKET_RE.match(bucket):
            raise BackendError(f"Invalid bucket name {bucket!r}")
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts or not rel.parts:
            raise BackendError(f"Invalid object path {path!r}")
        return self._root / bucket / Path(*rel.parts)
