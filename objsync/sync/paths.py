"""Mapping of local file paths to remote object paths."""

from pathlib import PurePath

from ..exceptions import PathMappingError
from ..utils import join_remote, normalize_remote_root


def map_remote_path(
    local_root: PurePath, remote_root: str, local_path: PurePath
) -> tuple[str, str]:
    """Compute the relative and remote path of a local file.

    The local root is stripped component by component, so ``/data/foo2``
    is never considered to be below ``/data/foo``. The relative path is
    rendered with forward slashes and joined to the remote root. No other
    normalization is applied.

    Args:
        local_root: Local sync root
        remote_root: Remote sync root
        local_path: Absolute path of a file below ``local_root``

    Returns:
        Tuple of (relative_path, remote_path)

    Raises:
        PathMappingError: If ``local_path`` is not below ``local_root``

    Examples:
        >>> from pathlib import PurePosixPath
        >>> map_remote_path(
        ...     PurePosixPath("/data"), "/stor/backup", PurePosixPath("/data/a/b.txt")
        ... )
        ('a/b.txt', '/stor/backup/a/b.txt')
    """
    try:
        relative = local_path.relative_to(local_root)
    except ValueError as e:
        raise PathMappingError(f"{local_path} is not under {local_root}") from e

    relative_path = relative.as_posix()
    if relative_path in ("", "."):
        raise PathMappingError(f"{local_path} is the sync root itself")

    return relative_path, join_remote(normalize_remote_root(remote_root), relative_path)
