"""
procurement_services.document_store -- Blob storage for PR, quote and invoice files.

Responsibility:
    Narrow interface to the document store: upload, delete, and time-limited
    signed URLs.  Paths are namespaced by uploader id and parent entity id
    (``scoped_path``) so uploads never collide and access is auditable.

Implementations:
    * ``InMemoryDocumentStore`` -- process-local, for tests and previews.
    * ``LocalFileDocumentStore`` -- files under a root directory, with
      HMAC-SHA256 signed URLs checked by ``verify_signed_url``.

Failure modes:
    * Backend write failure  -> ``DocumentUploadError``.
    * Path escaping the store root  -> ``DocumentUploadError``.
"""

from __future__ import annotations

import hashlib
import hmac
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit
from uuid import UUID, uuid4

from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import DocumentUploadError, InvalidDocumentError
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.document_store")


@dataclass(frozen=True)
class DocumentUpload:
    """A file handed to the workflow core by a caller."""

    file_name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        suffix = Path(self.file_name).suffix.lstrip(".").lower()
        return suffix or "bin"


def scoped_path(owner_id: UUID, entity_id: UUID, extension: str) -> str:
    """``{owner}/{entity}/{random}.{ext}`` -- unique per upload."""
    return f"{owner_id}/{entity_id}/{uuid4()}.{extension.lstrip('.')}"


def validate_upload(
    upload: DocumentUpload,
    max_bytes: int,
    allowed_types: tuple[str, ...] | None = None,
) -> None:
    """Raise InvalidDocumentError unless ``upload`` has an allowed type and size."""
    if allowed_types is not None and upload.content_type not in allowed_types:
        raise InvalidDocumentError(
            f"Invalid file type. Allowed types: {', '.join(allowed_types)}"
        )
    if upload.size == 0:
        raise InvalidDocumentError("The file is empty")
    if upload.size > max_bytes:
        raise InvalidDocumentError(
            f"File size must be at most {max_bytes // (1024 * 1024)}MB"
        )


@runtime_checkable
class DocumentStore(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None: ...

    def remove(self, bucket: str, path: str) -> None: ...

    def exists(self, bucket: str, path: str) -> bool: ...

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str: ...


class InMemoryDocumentStore:
    """Thread-safe dict-backed store."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        with self._lock:
            if (bucket, path) in self._objects:
                raise DocumentUploadError(bucket, path, "object already exists")
            self._objects[(bucket, path)] = (bytes(data), content_type)
        logger.info(
            "document_uploaded",
            extra={"bucket": bucket, "path": path, "size_bytes": len(data)},
        )

    def remove(self, bucket: str, path: str) -> None:
        with self._lock:
            self._objects.pop((bucket, path), None)
        logger.info("document_removed", extra={"bucket": bucket, "path": path})

    def exists(self, bucket: str, path: str) -> bool:
        with self._lock:
            return (bucket, path) in self._objects

    def read(self, bucket: str, path: str) -> bytes:
        with self._lock:
            return self._objects[(bucket, path)][0]

    def paths(self, bucket: str) -> list[str]:
        with self._lock:
            return sorted(p for (b, p) in self._objects if b == bucket)

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        expires = int(self._clock.now().timestamp()) + expires_in
        return f"memory://{bucket}/{quote(path)}?{urlencode({'expires': expires})}"


class LocalFileDocumentStore:
    """Stores documents as files under ``root/<bucket>/<path>``."""

    def __init__(
        self,
        root: Path | str,
        secret_key: bytes,
        base_url: str = "http://localhost/documents",
        clock: Clock | None = None,
    ):
        if not secret_key:
            raise ValueError("secret_key is required for signed URLs")
        self._root = Path(root).resolve()
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._clock = clock or SystemClock()

    def _resolve(self, bucket: str, path: str) -> Path:
        target = (self._root / bucket / path).resolve()
        if not target.is_relative_to(self._root / bucket):
            raise DocumentUploadError(bucket, path, "path escapes bucket")
        return target

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(bucket, path)
        if target.exists():
            raise DocumentUploadError(bucket, path, "object already exists")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise DocumentUploadError(bucket, path, str(exc)) from exc
        logger.info(
            "document_uploaded",
            extra={"bucket": bucket, "path": path, "size_bytes": len(data)},
        )

    def remove(self, bucket: str, path: str) -> None:
        self._resolve(bucket, path).unlink(missing_ok=True)
        logger.info("document_removed", extra={"bucket": bucket, "path": path})

    def exists(self, bucket: str, path: str) -> bool:
        return self._resolve(bucket, path).is_file()

    def _signature(self, bucket: str, path: str, expires: int) -> str:
        message = f"{bucket}\n{path}\n{expires}".encode()
        return hmac.new(self._secret_key, message, hashlib.sha256).hexdigest()

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        expires = int(self._clock.now().timestamp()) + expires_in
        query = urlencode({"expires": expires, "signature": self._signature(bucket, path, expires)})
        return f"{self._base_url}/{bucket}/{quote(path)}?{query}"

    def verify_signed_url(self, url: str) -> bool:
        """True when ``url`` was signed by this store and has not expired."""
        parts = urlsplit(url)
        prefix = urlsplit(self._base_url).path.rstrip("/") + "/"
        if not parts.path.startswith(prefix):
            return False
        bucket, _, quoted_path = parts.path[len(prefix):].partition("/")
        params = parse_qs(parts.query)
        try:
            expires = int(params["expires"][0])
            signature = params["signature"][0]
        except (KeyError, IndexError, ValueError):
            return False
        if expires < int(self._clock.now().timestamp()):
            return False
        expected = self._signature(bucket, unquote(quoted_path), expires)
        return hmac.compare_digest(expected, signature)
