from fastapi import APIRouter, Depends, Form, Query, UploadFile, File as FileParam, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from datetime import datetime
from typing import Callable, List, Optional
from urllib.parse import quote
import logging

from filevault.api.deps import (
    get_blob_store,
    get_duplicate_index,
    get_file_registry,
    get_metadata_store,
    get_permission_ledger,
    get_reclaimer,
    get_version_store,
)
from filevault.core.config import settings
from filevault.core.exceptions import FileVaultError, ValidationFailed
from filevault.core.security import get_current_user
from filevault.models.user import User
from filevault.schemas.file import (
    DeleteOut,
    DescriptionUpdate,
    DuplicateGroupOut,
    FileOut,
    FileSummary,
    FileVersionOut,
    FileWithVersions,
)
from filevault.schemas.metadata import MetadataIn, MetadataOut, MetadataValue
from filevault.schemas.permission import PermissionGrantIn, PermissionOut
from filevault.services.blob_store import BlobStore
from filevault.services.duplicate_service import DuplicateIndex
from filevault.services.file_service import FileRegistry, SearchFilters
from filevault.services.metadata_service import MetadataStore
from filevault.services.permission_service import PermissionLedger
from filevault.services.version_service import BlobDownload, VersionStore

router = APIRouter(prefix="/files", tags=["File Management"])
logger = logging.getLogger(__name__)


def _content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        # Non-ASCII or quote characters need the RFC 5987 form
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def _stream(download: BlobDownload) -> StreamingResponse:
    return StreamingResponse(
        download.chunks,
        media_type=download.content_type,
        headers={"Content-Disposition": _content_disposition(download.filename)},
    )


@router.post("/", response_model=FileOut, status_code=201)
async def upload_file(
    file: UploadFile = FileParam(...),
    virtual_path: str = Form("/"),
    description: Optional[str] = Form(None),
    size: Optional[int] = Form(None),
    type: Optional[str] = Form(None),
    current_user: User = Depends(get_current_user),
    registry: FileRegistry = Depends(get_file_registry),
    blob_store: BlobStore = Depends(get_blob_store),
):
    if not file.filename:
        raise ValidationFailed("Missing required fields")
    if file.size is not None and file.size > settings.MAX_UPLOAD_BYTES:
        raise ValidationFailed("File too large")

    storage_key = await run_in_threadpool(blob_store.store, file.file, file.filename, file.content_type)
    try:
        return await registry.resolve_or_create(
            owner_id=current_user.id,
            original_name=file.filename,
            virtual_path=virtual_path,
            storage_key=storage_key,
            description=description,
            size=size if size is not None else file.size,
            content_type=type or file.content_type,
        )
    except FileVaultError:
        # No version references the blob; drop it so it is not leaked.
        try:
            await run_in_threadpool(blob_store.remove, storage_key)
        except FileVaultError as exc:
            logger.warning("Could not remove orphaned blob %s: %s", storage_key, exc.message)
        raise


@router.get("/", response_model=List[FileSummary])
async def list_files(
    current_user: User = Depends(get_current_user),
    registry: FileRegistry = Depends(get_file_registry),
):
    return await registry.list_for_user(current_user.id)


@router.get("/search", response_model=List[FileOut])
async def search_files(
    query: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    min_size: Optional[int] = Query(None, ge=0),
    max_size: Optional[int] = Query(None, ge=0),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    registry: FileRegistry = Depends(get_file_registry),
):
    filters = SearchFilters(
        query=query,
        type=type,
        min_size=min_size,
        max_size=max_size,
        start_date=start_date,
        end_date=end_date,
    )
    return await registry.search(current_user.id, filters)


@router.get("/duplicates", response_model=List[DuplicateGroupOut])
async def get_duplicate_files(
    current_user: User = Depends(get_current_user),
    index: DuplicateIndex = Depends(get_duplicate_index),
):
    groups = await index.find_duplicates_for_user(current_user.id)
    return [
        DuplicateGroupOut(hash=group.hash, files=[FileOut.model_validate(f) for f in group.files])
        for group in groups
    ]


@router.get("/{file_id}", response_model=FileOut)
async def get_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    registry: FileRegistry = Depends(get_file_registry),
):
    return await registry.get(file_id, current_user.id)


@router.patch("/{file_id}", response_model=FileOut)
async def update_file_description(
    file_id: str,
    body: DescriptionUpdate,
    current_user: User = Depends(get_current_user),
    registry: FileRegistry = Depends(get_file_registry),
):
    return await registry.update_description(file_id, body.description, current_user.id)


@router.delete("/{file_id}", response_model=DeleteOut)
async def delete_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    registry: FileRegistry = Depends(get_file_registry),
    reclaim: Callable[[List[str]], None] = Depends(get_reclaimer),
):
    result = await registry.delete(file_id, current_user.id)
    if result.unreclaimed:
        reclaim(result.unreclaimed)
    return DeleteOut(
        file_id=result.file_id,
        versions_removed=result.versions_removed,
        unreclaimed=result.unreclaimed,
    )


@router.get("/{file_id}/download", response_class=StreamingResponse)
async def download_latest(
    file_id: str,
    current_user: User = Depends(get_current_user),
    versions: VersionStore = Depends(get_version_store),
):
    return _stream(await versions.download_latest(file_id, current_user.id))


@router.get("/{file_id}/versions", response_model=FileWithVersions)
async def get_versions(
    file_id: str,
    current_user: User = Depends(get_current_user),
    versions: VersionStore = Depends(get_version_store),
):
    file, records = await versions.list_versions(file_id, current_user.id)
    return FileWithVersions(
        **FileOut.model_validate(file).model_dump(),
        versions=[FileVersionOut.model_validate(r) for r in records],
    )


@router.get("/{file_id}/versions/{version}/download", response_class=StreamingResponse)
async def download_version(
    file_id: str,
    version: int,
    current_user: User = Depends(get_current_user),
    versions: VersionStore = Depends(get_version_store),
):
    return _stream(await versions.download_version(file_id, version, current_user.id))


@router.post("/{file_id}/versions/{version}/restore", response_model=FileVersionOut)
async def restore_version(
    file_id: str,
    version: int,
    current_user: User = Depends(get_current_user),
    versions: VersionStore = Depends(get_version_store),
):
    return await versions.restore(file_id, version, current_user.id)


@router.get("/{file_id}/permissions", response_model=List[PermissionOut])
async def list_permissions(
    file_id: str,
    current_user: User = Depends(get_current_user),
    ledger: PermissionLedger = Depends(get_permission_ledger),
):
    return await ledger.list_grants(file_id, current_user.id)


@router.post("/{file_id}/permissions", response_model=PermissionOut)
async def grant_permissions(
    file_id: str,
    body: PermissionGrantIn,
    current_user: User = Depends(get_current_user),
    ledger: PermissionLedger = Depends(get_permission_ledger),
):
    return await ledger.grant(
        owner_id=current_user.id,
        file_id=file_id,
        user_id=body.user_id,
        can_read=body.can_read,
        can_write=body.can_write,
        can_delete=body.can_delete,
    )


@router.get("/{file_id}/duplicates", response_model=List[FileOut])
async def get_duplicates_of_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    index: DuplicateIndex = Depends(get_duplicate_index),
):
    return await index.find_duplicates_of(file_id, current_user.id)


@router.get("/{file_id}/metadata", response_model=List[MetadataOut])
async def get_metadata(
    file_id: str,
    current_user: User = Depends(get_current_user),
    store: MetadataStore = Depends(get_metadata_store),
):
    return await store.get_metadata(file_id, current_user.id)


@router.post("/{file_id}/metadata", response_model=MetadataOut, status_code=201)
async def add_metadata(
    file_id: str,
    body: MetadataIn,
    current_user: User = Depends(get_current_user),
    store: MetadataStore = Depends(get_metadata_store),
):
    return await store.add_metadata(file_id, body.key, body.value, current_user.id)


@router.put("/{file_id}/metadata/{key}", response_model=MetadataOut)
async def update_metadata(
    file_id: str,
    key: str,
    body: MetadataValue,
    current_user: User = Depends(get_current_user),
    store: MetadataStore = Depends(get_metadata_store),
):
    return await store.update_metadata(file_id, key, body.value, current_user.id)


@router.delete("/{file_id}/metadata/{key}", status_code=204)
async def delete_metadata(
    file_id: str,
    key: str,
    current_user: User = Depends(get_current_user),
    store: MetadataStore = Depends(get_metadata_store),
):
    await store.delete_metadata(file_id, key, current_user.id)
    return Response(status_code=204)
