import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.core.exceptions import NotFound
from filevault.models.file import File
from filevault.models.file_version import FileVersion
from filevault.services.blob_store import BlobStore
from filevault.services.permission_service import Capability, PermissionLedger, get_file_or_404

logger = logging.getLogger(__name__)


@dataclass
class BlobDownload:
    """A blob ready to stream. ``filename`` is the storage key of the version being served."""

    filename: str
    content_type: str
    chunks: Iterator[bytes]


class VersionStore:
    """Append-only version history and the current-pointer moves over it.

    History, restore and per-version downloads are owner-only; the latest
    version can also be downloaded by grantees holding read access.
    """

    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store
        self.permissions = PermissionLedger(db)

    async def _get_version(self, file_id: str, version: int) -> FileVersion:
        record = await self.db.scalar(
            select(FileVersion).where(FileVersion.file_id == file_id, FileVersion.version == version)
        )
        if record is None:
            raise NotFound(f"Version {version} of file {file_id} not found")
        return record

    async def list_versions(self, file_id: str, requester_id: str) -> Tuple[File, List[FileVersion]]:
        file = await get_file_or_404(self.db, file_id)
        await self.permissions.authorize(file, requester_id, owner_only=True)
        result = await self.db.execute(
            select(FileVersion).where(FileVersion.file_id == file_id).order_by(FileVersion.version)
        )
        return file, list(result.scalars().all())

    async def restore(self, file_id: str, version_number: int, requester_id: str) -> FileVersion:
        """Point the file at an existing version. Newer versions stay in history."""
        file = await get_file_or_404(self.db, file_id, for_update=True)
        await self.permissions.authorize(file, requester_id, owner_only=True)
        record = await self._get_version(file_id, version_number)

        file.current_hash = record.hash
        file.current_version = record.version
        file.current_storage_key = record.storage_key
        await self.db.commit()
        logger.info("Restored file %s to version %d", file_id, record.version)
        return record

    async def _open(self, storage_key: str, content_type: Optional[str]) -> BlobDownload:
        chunks = await run_in_threadpool(self.blob_store.read, storage_key)
        return BlobDownload(
            filename=storage_key,
            content_type=content_type or "application/octet-stream",
            chunks=chunks,
        )

    async def download_version(self, file_id: str, version: int, requester_id: str) -> BlobDownload:
        file = await get_file_or_404(self.db, file_id)
        await self.permissions.authorize(file, requester_id, owner_only=True)
        record = await self._get_version(file_id, version)
        return await self._open(record.storage_key, file.mime_type)

    async def download_latest(self, file_id: str, requester_id: str) -> BlobDownload:
        file = await get_file_or_404(self.db, file_id)
        await self.permissions.authorize(file, requester_id, Capability.READ)
        return await self._open(file.current_storage_key, file.mime_type)
