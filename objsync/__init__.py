"""objsync - one-way directory sync to hierarchical HTTP object stores."""

from .api import ObjectStoreClient
from .exceptions import (
    AuthenticationError,
    DeleteError,
    EnumerationSkip,
    InvalidResponseError,
    ListError,
    NetworkError,
    NotFoundError,
    ObjSyncAPIError,
    ObjSyncConfigError,
    ObjSyncError,
    PathMappingError,
    PermissionDeniedError,
    RateLimitError,
    ReadError,
    UploadError,
)
from .models import ObjectMetadata, RemoteEntry
from .utils import decode_content_md5

__version__ = "0.1.0"

__all__ = [
    "ObjectStoreClient",
    "ObjectMetadata",
    "RemoteEntry",
    "ObjSyncError",
    "ObjSyncAPIError",
    "ObjSyncConfigError",
    "AuthenticationError",
    "DeleteError",
    "EnumerationSkip",
    "InvalidResponseError",
    "ListError",
    "NetworkError",
    "NotFoundError",
    "PathMappingError",
    "PermissionDeniedError",
    "RateLimitError",
    "ReadError",
    "UploadError",
    "decode_content_md5",
]
