"""Typed errors raised by the file versioning core.

The API layer maps each class to an HTTP status in ``filevault.main``; the
core itself never deals with transport concerns.
"""


class FileVaultError(Exception):
    """Base class for every error the core hands back to its caller."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(FileVaultError):
    """File, version, metadata key or blob does not exist."""

    status_code = 404


class PermissionDenied(FileVaultError):
    """Ownership or grant check failed."""

    status_code = 403


class ValidationFailed(FileVaultError):
    """Required input is missing or inconsistent."""

    status_code = 400


class StorageIOError(FileVaultError):
    """The blob store could not read or write a blob."""

    status_code = 502


class UploadFailed(FileVaultError):
    """Hashing or the transactional write failed; nothing was persisted."""

    status_code = 500


class DeleteFailed(FileVaultError):
    """The transactional delete failed and was rolled back; nothing was removed."""

    status_code = 500
