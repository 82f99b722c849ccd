import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.core.exceptions import (
    DeleteFailed,
    FileVaultError,
    NotFound,
    StorageIOError,
    UploadFailed,
    ValidationFailed,
)
from filevault.models.file import File
from filevault.models.file_metadata import FileMetadata
from filevault.models.file_permission import FilePermission
from filevault.models.file_version import FileVersion
from filevault.services.blob_store import BlobStore
from filevault.services.hash_service import ContentHasher
from filevault.services.permission_service import Capability, PermissionLedger, get_file_or_404

logger = logging.getLogger(__name__)

DEFAULT_VIRTUAL_PATH = "/"


@dataclass
class SearchFilters:
    query: Optional[str] = None
    type: Optional[str] = None
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass
class DeleteResult:
    file_id: str
    versions_removed: int
    unreclaimed: List[str] = field(default_factory=list)


class FileRegistry:
    """Logical files keyed by (owner, original name, virtual path)."""

    def __init__(self, db: AsyncSession, blob_store: BlobStore, hasher: Optional[ContentHasher] = None):
        self.db = db
        self.blob_store = blob_store
        self.hasher = hasher or ContentHasher(blob_store)
        self.permissions = PermissionLedger(db)

    async def _find(self, owner_id: str, original_name: str, virtual_path: str) -> Optional[File]:
        return await self.db.scalar(
            select(File)
            .where(
                File.user_id == owner_id,
                File.original_name == original_name,
                File.virtual_path == virtual_path,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    async def resolve_or_create(
        self,
        owner_id: str,
        original_name: str,
        virtual_path: Optional[str] = DEFAULT_VIRTUAL_PATH,
        storage_key: Optional[str] = None,
        description: Optional[str] = None,
        size: Optional[int] = None,
        content_type: Optional[str] = None,
    ) -> File:
        """Record an already stored blob as a new file or as the next version of an existing one.

        The blob is hashed before anything is written, so a hashing failure
        leaves no trace. Creating the file with its version 0, or appending a
        version and moving the current pointer, each commit as one
        transaction. The returned file is refreshed after the commit.
        """
        if not owner_id or not original_name or not storage_key:
            raise ValidationFailed("Missing required fields")
        virtual_path = virtual_path or DEFAULT_VIRTUAL_PATH

        try:
            content_hash = await self.hasher.hash(storage_key)
        except (NotFound, StorageIOError) as exc:
            raise UploadFailed(f"Could not hash uploaded blob: {exc.message}") from exc

        try:
            file = await self._find(owner_id, original_name, virtual_path)
            if file is None:
                file = File(
                    user_id=owner_id,
                    original_name=original_name,
                    virtual_path=virtual_path,
                    current_hash=content_hash,
                    current_version=0,
                    current_storage_key=storage_key,
                    description=description,
                    size_bytes=size,
                    mime_type=content_type,
                    versions=[FileVersion(version=0, storage_key=storage_key, hash=content_hash)],
                )
                self.db.add(file)
                version_number = 0
            else:
                # The row lock above serialises version assignment per file
                version_number = await self.db.scalar(
                    select(func.count()).select_from(FileVersion).where(FileVersion.file_id == file.id)
                )
                self.db.add(FileVersion(
                    file_id=file.id,
                    version=version_number,
                    storage_key=storage_key,
                    hash=content_hash,
                ))
                file.current_hash = content_hash
                file.current_version = version_number
                file.current_storage_key = storage_key
                if description is not None:
                    file.description = description
                if size is not None:
                    file.size_bytes = size
                if content_type is not None:
                    file.mime_type = content_type
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise UploadFailed(f"Could not record upload of {original_name!r}") from exc

        await self.db.refresh(file)
        logger.info(
            "Stored %s at %s for %s as version %d of file %s (%s)",
            original_name, virtual_path, owner_id, version_number, file.id, content_hash,
        )
        return file

    async def get(self, file_id: str, requester_id: str) -> File:
        file = await get_file_or_404(self.db, file_id)
        await self.permissions.authorize(file, requester_id, Capability.READ)
        return file

    async def list_for_user(self, owner_id: str) -> List[File]:
        result = await self.db.execute(
            select(File).where(File.user_id == owner_id).order_by(File.created_at, File.id)
        )
        return list(result.scalars().all())

    async def update_description(self, file_id: str, description: Optional[str], requester_id: str) -> File:
        file = await get_file_or_404(self.db, file_id)
        await self.permissions.authorize(file, requester_id, Capability.WRITE)
        file.description = description
        await self.db.commit()
        await self.db.refresh(file)
        return file

    async def delete(self, file_id: str, requester_id: str) -> DeleteResult:
        """Remove the file and everything attached to it, then reclaim blobs best-effort.

        Blob removal happens after the commit and never fails the operation;
        keys that could not be removed are returned in ``unreclaimed``.
        """
        file = await get_file_or_404(self.db, file_id)
        await self.permissions.authorize(file, requester_id, owner_only=True)

        result = await self.db.execute(
            select(FileVersion.storage_key).where(FileVersion.file_id == file_id).order_by(FileVersion.version)
        )
        storage_keys = list(result.scalars().all())
        try:
            await self.db.execute(delete(FileMetadata).where(FileMetadata.file_id == file_id))
            await self.db.execute(delete(FilePermission).where(FilePermission.file_id == file_id))
            await self.db.execute(delete(FileVersion).where(FileVersion.file_id == file_id))
            await self.db.execute(delete(File).where(File.id == file_id))
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise DeleteFailed(f"Could not delete file {file_id}") from exc
        logger.info("Deleted file %s with %d versions", file_id, len(storage_keys))

        unreclaimed = []
        for storage_key in storage_keys:
            try:
                await run_in_threadpool(self.blob_store.remove, storage_key)
            except FileVaultError as exc:
                logger.warning("Could not reclaim blob %s: %s", storage_key, exc.message)
                unreclaimed.append(storage_key)
        return DeleteResult(file_id=file_id, versions_removed=len(storage_keys), unreclaimed=unreclaimed)

    async def search(self, owner_id: str, filters: SearchFilters) -> List[File]:
        if filters.min_size is not None and filters.max_size is not None and filters.min_size > filters.max_size:
            raise ValidationFailed("min_size must not exceed max_size")
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationFailed("start_date must not be after end_date")

        conditions = [File.user_id == owner_id]
        if filters.query:
            conditions.append(or_(
                File.original_name.icontains(filters.query, autoescape=True),
                File.description.icontains(filters.query, autoescape=True),
            ))
        if filters.type:
            conditions.append(File.mime_type.icontains(filters.type, autoescape=True))
        if filters.min_size is not None:
            conditions.append(File.size_bytes >= filters.min_size)
        if filters.max_size is not None:
            conditions.append(File.size_bytes <= filters.max_size)
        if filters.start_date is not None:
            conditions.append(File.created_at >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(File.created_at <= filters.end_date)

        result = await self.db.execute(
            select(File).where(and_(*conditions)).order_by(File.created_at, File.id)
        )
        return list(result.scalars().all())
