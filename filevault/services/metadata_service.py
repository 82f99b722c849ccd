import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.core.exceptions import NotFound, ValidationFailed
from filevault.models.file_metadata import FileMetadata
from filevault.services.permission_service import Capability, PermissionLedger, get_file_or_404

logger = logging.getLogger(__name__)


class MetadataStore:
    """Free-form key/value entries attached to a file.

    Reading needs read access, every mutation needs write access.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.permissions = PermissionLedger(db)

    async def _authorized(self, file_id: str, requester_id: str, capability: Capability) -> None:
        file = await get_file_or_404(self.db, file_id)
        await self.permissions.authorize(file, requester_id, capability)

    async def _entry(self, file_id: str, key: str) -> FileMetadata:
        entry = await self.db.scalar(
            select(FileMetadata).where(FileMetadata.file_id == file_id, FileMetadata.key == key)
        )
        if entry is None:
            raise NotFound(f"Metadata key {key!r} not found")
        return entry

    async def get_metadata(self, file_id: str, requester_id: str) -> List[FileMetadata]:
        await self._authorized(file_id, requester_id, Capability.READ)
        result = await self.db.execute(
            select(FileMetadata).where(FileMetadata.file_id == file_id).order_by(FileMetadata.key)
        )
        return list(result.scalars().all())

    async def add_metadata(self, file_id: str, key: str, value: str, requester_id: str) -> FileMetadata:
        if not key:
            raise ValidationFailed("Metadata key is required")
        await self._authorized(file_id, requester_id, Capability.WRITE)
        entry = FileMetadata(file_id=file_id, key=key, value=value)
        self.db.add(entry)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ValidationFailed(f"Metadata key {key!r} already exists") from exc
        await self.db.refresh(entry)
        return entry

    async def update_metadata(self, file_id: str, key: str, value: str, requester_id: str) -> FileMetadata:
        await self._authorized(file_id, requester_id, Capability.WRITE)
        entry = await self._entry(file_id, key)
        entry.value = value
        await self.db.commit()
        await self.db.refresh(entry)
        return entry

    async def delete_metadata(self, file_id: str, key: str, requester_id: str) -> None:
        await self._authorized(file_id, requester_id, Capability.WRITE)
        entry = await self._entry(file_id, key)
        await self.db.delete(entry)
        await self.db.commit()
        logger.info("Deleted metadata %r from file %s", key, file_id)
