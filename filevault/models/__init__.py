from filevault.models.user import User, Role
from filevault.models.file import File
from filevault.models.file_version import FileVersion
from filevault.models.file_permission import FilePermission
from filevault.models.file_metadata import FileMetadata

__all__ = ["User", "Role", "File", "FileVersion", "FilePermission", "FileMetadata"]
