from dataclasses import dataclass
from itertools import groupby
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.models.file import File
from filevault.services.permission_service import PermissionLedger, get_file_or_404


@dataclass
class DuplicateGroup:
    hash: str
    files: List[File]


class DuplicateIndex:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.permissions = PermissionLedger(db)

    async def find_duplicates_for_user(self, user_id: str) -> List[DuplicateGroup]:
        """Group the user's files by current hash; singletons are dropped, groups sorted by hash."""
        result = await self.db.execute(
            select(File)
            .where(File.user_id == user_id)
            .order_by(File.current_hash, File.created_at, File.id)
        )
        groups = []
        for content_hash, members in groupby(result.scalars().all(), key=lambda f: f.current_hash):
            members = list(members)
            if len(members) > 1:
                groups.append(DuplicateGroup(hash=content_hash, files=members))
        return groups

    async def find_duplicates_of(self, file_id: str, user_id: str) -> List[File]:
        file = await get_file_or_404(self.db, file_id)
        await self.permissions.authorize(file, user_id, owner_only=True)
        result = await self.db.execute(
            select(File)
            .where(
                File.user_id == user_id,
                File.current_hash == file.current_hash,
                File.id != file.id,
            )
            .order_by(File.created_at, File.id)
        )
        return list(result.scalars().all())
