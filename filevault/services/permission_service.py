import enum
import logging
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.core.exceptions import NotFound, PermissionDenied
from filevault.models.file import File
from filevault.models.file_permission import FilePermission

logger = logging.getLogger(__name__)


class Capability(str, enum.Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"


_FLAG_FOR = {
    Capability.READ: "can_read",
    Capability.WRITE: "can_write",
    Capability.DELETE: "can_delete",
}


async def get_file_or_404(db: AsyncSession, file_id: str, for_update: bool = False) -> File:
    stmt = select(File).where(File.id == file_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    file = await db.scalar(stmt)
    if file is None:
        raise NotFound(f"File {file_id} not found")
    return file


class PermissionLedger:
    """Per-file, per-user capabilities. Ownership implies every capability."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _owner_of(self, file_id: str) -> Optional[str]:
        return await self.db.scalar(select(File.user_id).where(File.id == file_id))

    async def _grant_row(self, file_id: str, user_id: str) -> Optional[FilePermission]:
        return await self.db.scalar(
            select(FilePermission)
            .where(FilePermission.file_id == file_id, FilePermission.user_id == user_id)
            .execution_options(populate_existing=True)
        )

    async def _granted(self, file_id: str, user_id: str, capability: Capability) -> bool:
        row = await self._grant_row(file_id, user_id)
        if row is None:
            return False
        return bool(getattr(row, _FLAG_FOR[capability]))

    async def check(self, user_id: str, file_id: str, capability: Union[Capability, str]) -> bool:
        try:
            capability = Capability(capability)
        except ValueError:
            return False
        if await self._owner_of(file_id) == user_id:
            return True
        return await self._granted(file_id, user_id, capability)

    async def authorize(
        self,
        file: File,
        user_id: str,
        capability: Capability = Capability.READ,
        owner_only: bool = False,
    ) -> None:
        """Raise ``PermissionDenied`` unless ``user_id`` may use ``capability`` on ``file``.

        ``owner_only`` covers the operations that are restricted to the owner
        and never honour grants (version history, restore, delete, granting).
        """
        if file.user_id == user_id:
            return
        if owner_only:
            raise PermissionDenied("Only the owner can perform this operation")
        if not await self._granted(file.id, user_id, Capability(capability)):
            raise PermissionDenied(f"You don't have {Capability(capability).value} permission for this file")

    async def grant(
        self,
        owner_id: str,
        file_id: str,
        user_id: str,
        can_read: bool = False,
        can_write: bool = False,
        can_delete: bool = False,
    ) -> FilePermission:
        # Ownership is re-read from the database on every call
        if await self._owner_of(file_id) != owner_id:
            raise PermissionDenied("Only the owner can grant permissions")

        flags = {"can_read": can_read, "can_write": can_write, "can_delete": can_delete}
        row = await self._grant_row(file_id, user_id)
        if row is None:
            row = FilePermission(file_id=file_id, user_id=user_id, **flags)
            self.db.add(row)
        else:
            for name, value in flags.items():
                setattr(row, name, value)
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent grant inserted the row first; overwrite it.
            await self.db.rollback()
            row = await self._grant_row(file_id, user_id)
            for name, value in flags.items():
                setattr(row, name, value)
            await self.db.commit()
        await self.db.refresh(row)
        logger.info(
            "Granted %s on file %s: read=%s write=%s delete=%s",
            user_id, file_id, can_read, can_write, can_delete,
        )
        return row

    async def list_grants(self, file_id: str, requester_id: str) -> List[FilePermission]:
        file = await get_file_or_404(self.db, file_id)
        await self.authorize(file, requester_id, owner_only=True)
        result = await self.db.execute(
            select(FilePermission)
            .where(FilePermission.file_id == file_id)
            .order_by(FilePermission.user_id)
        )
        return list(result.scalars().all())
