"""Utility functions for objsync."""

import base64
import binascii
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Default number of concurrently outstanding operations per stage
DEFAULT_CONCURRENCY: int = 50

# Default number of copies the store keeps of each object
DEFAULT_COPIES: int = 2

# Chunk size for streamed reads (hashing and uploads)
DEFAULT_READ_CHUNK_SIZE: int = 64 * 1024

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Page size for directory listings
DEFAULT_LIST_LIMIT: int = 1000

# MD5 of the empty byte string
EMPTY_MD5: str = "d41d8cd98f00b204e9800998ecf8427e"


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def format_duration(seconds: float) -> str:
    """Format an elapsed time for the run summary.

    Examples:
        >>> format_duration(0.25)
        '0.25s'
        >>> format_duration(75)
        '1m15.0s'
    """
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m{rest:.1f}s"


# =============================================================================
# Digest utilities
# =============================================================================


def decode_content_md5(value: Optional[str]) -> str:
    """Convert a stored ``Content-MD5`` value to a hex digest.

    The store keeps digests base64-encoded. Objects without a digest
    (e.g. empty objects) are treated as having the digest of the empty
    byte string.

    Args:
        value: Base64-encoded MD5 or None

    Returns:
        Lowercase hex digest

    Raises:
        ValueError: If the value is not valid base64

    Examples:
        >>> decode_content_md5("1B2M2Y8AsgTpgAmY7PhCfg==")
        'd41d8cd98f00b204e9800998ecf8427e'
        >>> decode_content_md5(None)
        'd41d8cd98f00b204e9800998ecf8427e'
    """
    if not value:
        return EMPTY_MD5
    try:
        return base64.b64decode(value, validate=True).hex()
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid Content-MD5: {value}") from e


# =============================================================================
# Remote path utilities
# =============================================================================


def normalize_remote_root(path: str) -> str:
    """Normalize a remote directory path.

    Ensures a single leading slash and strips trailing slashes; the
    root itself stays ``/``.

    Examples:
        >>> normalize_remote_root("stor/backup/")
        '/stor/backup'
        >>> normalize_remote_root("/")
        '/'
    """
    path = "/" + path.strip("/")
    return path


def join_remote(parent: str, name: str) -> str:
    """Join a remote directory and a child name with ``/``.

    Examples:
        >>> join_remote("/stor/backup", "a.txt")
        '/stor/backup/a.txt'
        >>> join_remote("/", "a.txt")
        '/a.txt'
    """
    if parent.endswith("/"):
        return parent + name
    return parent + "/" + name


# =============================================================================
# Header utilities
# =============================================================================


def parse_header(value: str) -> tuple[str, str]:
    """Parse a ``Name: value`` header string.

    Args:
        value: Header string from the command line

    Returns:
        Tuple of (name, value)

    Raises:
        ValueError: If the string has no name or no colon

    Examples:
        >>> parse_header("m-color: blue")
        ('m-color', 'blue')
    """
    if ":" not in value:
        raise ValueError(f"Invalid header (expected 'Name: value'): {value}")
    name, _, header_value = value.partition(":")
    name = name.strip()
    if not name:
        raise ValueError(f"Invalid header (empty name): {value}")
    return name, header_value.strip()
