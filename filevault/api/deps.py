from typing import Callable, List

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.core.database import get_db
from filevault.services.blob_store import BlobStore
from filevault.services.duplicate_service import DuplicateIndex
from filevault.services.file_service import FileRegistry
from filevault.services.hash_service import ContentHasher
from filevault.services.metadata_service import MetadataStore
from filevault.services.permission_service import PermissionLedger
from filevault.services.version_service import VersionStore


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_reclaimer(request: Request) -> Callable[[List[str]], None]:
    return request.app.state.reclaim_blobs


def get_file_registry(
    request: Request,
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
) -> FileRegistry:
    hasher = ContentHasher(blob_store, request.app.state.hash_chunk_size)
    return FileRegistry(db, blob_store, hasher)


def get_version_store(
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
) -> VersionStore:
    return VersionStore(db, blob_store)


def get_permission_ledger(db: AsyncSession = Depends(get_db)) -> PermissionLedger:
    return PermissionLedger(db)


def get_duplicate_index(db: AsyncSession = Depends(get_db)) -> DuplicateIndex:
    return DuplicateIndex(db)


def get_metadata_store(db: AsyncSession = Depends(get_db)) -> MetadataStore:
    return MetadataStore(db)
