"""Data models for remote object store entries."""

from dataclasses import dataclass
from typing import Optional, Union

from .utils import join_remote

OBJECT_TYPE = "object"
DIRECTORY_TYPE = "directory"


@dataclass
class ObjectMetadata:
    """Metadata of a remote object as returned by a HEAD lookup."""

    path: str
    """Remote path that was looked up"""

    size: Optional[Union[int, str]]
    """Size as reported by the store (header values arrive as strings)"""

    content_md5: Optional[str] = None
    """Stored digest, base64-encoded (absent for e.g. empty objects)"""

    content_type: str = ""
    """Content type reported by the store"""

    is_directory: bool = False
    """Whether the path is a directory-like container"""


@dataclass
class RemoteEntry:
    """One entry produced by a recursive remote listing."""

    parent: str
    """Remote directory containing the entry"""

    name: str
    """Entry name within its parent"""

    type: str
    """``"object"`` or ``"directory"``"""

    size: Optional[int] = None
    """Object size, when the listing reports it"""

    @property
    def remote_path(self) -> str:
        """Full remote path of the entry."""
        return join_remote(self.parent, self.name)

    @property
    def is_object(self) -> bool:
        """Whether this entry is an object (as opposed to a directory)."""
        return self.type == OBJECT_TYPE
