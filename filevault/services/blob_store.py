from abc import ABC, abstractmethod
from minio import Minio
from minio.error import MinioException, S3Error
from pathlib import Path
from typing import BinaryIO, Iterator, Optional
from urllib3.exceptions import HTTPError
import logging
import os
import shutil
import uuid

from filevault.core.config import Settings
from filevault.core.exceptions import NotFound, StorageIOError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def make_storage_key(filename: str) -> str:
    """Opaque, per-upload key. Unrelated to the logical file's identity."""
    name = os.path.basename(filename or "") or "blob"
    return f"{uuid.uuid4()}/{name}"


class BlobStore(ABC):
    """Durable byte storage addressed by an opaque storage key."""

    @abstractmethod
    def store(self, stream: BinaryIO, filename: str, content_type: Optional[str] = None) -> str:
        ...

    @abstractmethod
    def read(self, storage_key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """Open the blob and return an iterator over its chunks.

        Opening happens eagerly so a missing blob raises ``NotFound`` here,
        not halfway through a response.
        """

    @abstractmethod
    def exists(self, storage_key: str) -> bool:
        ...

    @abstractmethod
    def remove(self, storage_key: str) -> None:
        ...


class LocalBlobStore(BlobStore):
    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, storage_key: str) -> Path:
        path = (self.root / storage_key).resolve()
        if self.root not in path.parents:
            raise NotFound(f"Blob {storage_key!r} not found")
        return path

    def store(self, stream: BinaryIO, filename: str, content_type: Optional[str] = None) -> str:
        storage_key = make_storage_key(filename)
        path = self._path(storage_key)
        partial = path.with_name(path.name + ".part")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(partial, "wb") as out:
                shutil.copyfileobj(stream, out, DEFAULT_CHUNK_SIZE)
            # Only a fully written blob becomes visible under its key
            os.replace(partial, path)
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise StorageIOError(f"Could not store blob {storage_key!r}: {exc}") from exc
        return storage_key

    def read(self, storage_key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        path = self._path(storage_key)
        try:
            handle = open(path, "rb")
        except FileNotFoundError as exc:
            raise NotFound(f"Blob {storage_key!r} not found") from exc
        except OSError as exc:
            raise StorageIOError(f"Could not read blob {storage_key!r}: {exc}") from exc
        return self._iter_chunks(handle, storage_key, chunk_size)

    @staticmethod
    def _iter_chunks(handle: BinaryIO, storage_key: str, chunk_size: int) -> Iterator[bytes]:
        with handle:
            while True:
                try:
                    chunk = handle.read(chunk_size)
                except OSError as exc:
                    raise StorageIOError(f"Could not read blob {storage_key!r}: {exc}") from exc
                if not chunk:
                    break
                yield chunk

    def exists(self, storage_key: str) -> bool:
        try:
            return self._path(storage_key).is_file()
        except NotFound:
            return False

    def remove(self, storage_key: str) -> None:
        path = self._path(storage_key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageIOError(f"Could not remove blob {storage_key!r}: {exc}") from exc
        try:
            path.parent.rmdir()
        except OSError:
            pass


class MinIOBlobStore(BlobStore):
    PART_SIZE = 10 * 1024 * 1024

    def __init__(self, settings: Settings, client: Optional[Minio] = None):
        self.client = client or Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
            region=settings.MINIO_REGION,  # Explicit region to avoid lookup
        )
        self.bucket = settings.MINIO_BUCKET
        self._ensure_bucket()

    def _ensure_bucket(self):
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
        except (MinioException, HTTPError) as exc:
            logger.warning("MinIO bucket check failed: %s", exc)

    def store(self, stream: BinaryIO, filename: str, content_type: Optional[str] = None) -> str:
        storage_key = make_storage_key(filename)
        try:
            # Unknown length: minio uploads in multipart chunks of PART_SIZE
            self.client.put_object(
                self.bucket, storage_key, stream,
                length=-1,
                part_size=self.PART_SIZE,
                content_type=content_type or "application/octet-stream",
            )
        except (MinioException, HTTPError) as exc:
            raise StorageIOError(f"Could not store blob {storage_key!r}: {exc}") from exc
        return storage_key

    def read(self, storage_key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        try:
            response = self.client.get_object(self.bucket, storage_key)
        except S3Error as exc:
            if exc.code in ("NoSuchKey", "NoSuchObject"):
                raise NotFound(f"Blob {storage_key!r} not found") from exc
            raise StorageIOError(f"Could not read blob {storage_key!r}: {exc}") from exc
        except (MinioException, HTTPError) as exc:
            raise StorageIOError(f"Could not read blob {storage_key!r}: {exc}") from exc
        return self._iter_chunks(response, storage_key, chunk_size)

    @staticmethod
    def _iter_chunks(response, storage_key: str, chunk_size: int) -> Iterator[bytes]:
        try:
            yield from response.stream(chunk_size)
        except (MinioException, HTTPError) as exc:
            # Connection dropped mid-transfer
            raise StorageIOError(f"Could not read blob {storage_key!r}: {exc}") from exc
        finally:
            response.close()
            response.release_conn()

    def exists(self, storage_key: str) -> bool:
        try:
            self.client.stat_object(self.bucket, storage_key)
        except S3Error as exc:
            if exc.code in ("NoSuchKey", "NoSuchObject"):
                return False
            raise StorageIOError(f"Could not stat blob {storage_key!r}: {exc}") from exc
        except (MinioException, HTTPError) as exc:
            raise StorageIOError(f"Could not stat blob {storage_key!r}: {exc}") from exc
        return True

    def remove(self, storage_key: str) -> None:
        try:
            self.client.remove_object(self.bucket, storage_key)
        except (MinioException, HTTPError) as exc:
            raise StorageIOError(f"Could not remove blob {storage_key!r}: {exc}") from exc


def create_blob_store(settings: Settings) -> BlobStore:
    if settings.STORAGE_BACKEND == "local":
        return LocalBlobStore(settings.LOCAL_STORAGE_DIR)
    if settings.STORAGE_BACKEND == "minio":
        return MinIOBlobStore(settings)
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND!r}")
