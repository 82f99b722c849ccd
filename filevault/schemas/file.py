from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class FileSummary(BaseModel):
    id: str
    original_name: str
    current_storage_key: str

    class Config:
        from_attributes = True

class FileOut(BaseModel):
    id: str
    user_id: str
    original_name: str
    virtual_path: str
    current_hash: str
    current_version: int
    current_storage_key: str
    description: Optional[str] = None
    size_bytes: Optional[int] = None
    mime_type: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class FileVersionOut(BaseModel):
    version: int
    storage_key: str
    hash: str
    created_at: datetime

    class Config:
        from_attributes = True

class FileWithVersions(FileOut):
    versions: List[FileVersionOut]

class DescriptionUpdate(BaseModel):
    description: Optional[str] = None

class DeleteOut(BaseModel):
    message: str = "File deleted successfully"
    file_id: str
    versions_removed: int
    unreclaimed: List[str] = []

class DuplicateGroupOut(BaseModel):
    hash: str
    files: List[FileOut]

    class Config:
        from_attributes = True
