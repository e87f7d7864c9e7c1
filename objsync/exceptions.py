"""Exception hierarchy for objsync."""

import errno
from typing import Optional


class ObjSyncError(Exception):
    """Base exception for all objsync errors."""


class ObjSyncConfigError(ObjSyncError):
    """Raised when configuration is missing or invalid."""


class ObjSyncAPIError(ObjSyncError):
    """Raised when a request to the object store fails.

    Attributes:
        status_code: HTTP status code (None for transport failures)
        code: Error code reported by the store, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def error_code(self) -> str:
        """Short identifier for progress lines and the error report."""
        if self.code:
            return self.code
        if self.status_code is not None:
            return str(self.status_code)
        return type(self).__name__


class NotFoundError(ObjSyncAPIError):
    """Raised when the requested remote path does not exist."""


class AuthenticationError(ObjSyncAPIError):
    """Raised when the store rejects our credentials."""


class PermissionDeniedError(ObjSyncAPIError):
    """Raised when access to a remote path is forbidden."""


class RateLimitError(ObjSyncAPIError):
    """Raised when the store throttles us."""


class NetworkError(ObjSyncAPIError):
    """Raised on connection, timeout and other transport failures."""


class InvalidResponseError(ObjSyncAPIError):
    """Raised when the store answers with something we cannot parse."""


class UploadError(ObjSyncAPIError):
    """Raised when an object upload fails."""


class ListError(ObjSyncAPIError):
    """Raised when listing a remote directory tree fails."""


class DeleteError(ObjSyncAPIError):
    """Raised when deleting a remote object fails."""


class EnumerationSkip(ObjSyncError):
    """A discovered local path is excluded from the run."""


class PathMappingError(EnumerationSkip):
    """A local path does not lie under the local sync root."""


class ReadError(ObjSyncError):
    """A local file could not be read."""

    def __init__(self, path: str, cause: OSError):
        reason = cause.strerror or str(cause)
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.cause = cause

    @property
    def error_code(self) -> str:
        """Errno name of the underlying failure (e.g. ``ENOENT``)."""
        if self.cause.errno is not None:
            return errno.errorcode.get(self.cause.errno, str(self.cause.errno))
        return type(self.cause).__name__
