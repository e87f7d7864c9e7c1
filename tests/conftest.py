"""Shared test helpers for objsync tests."""

import asyncio
import base64
import hashlib
import io
from typing import Optional

from rich.console import Console

from objsync.exceptions import NotFoundError
from objsync.models import ObjectMetadata, RemoteEntry
from objsync.output import OutputFormatter


class FakeStore:
    """In-memory stand-in for ObjectStoreClient.

    Objects are kept as ``{remote_path: bytes}``. Every call is recorded
    and the number of concurrently running calls is tracked.
    """

    def __init__(self, objects: Optional[dict[str, bytes]] = None, delay: float = 0):
        self.objects: dict[str, bytes] = dict(objects or {})
        self.directories: set[str] = set()
        self.delay = delay
        self.info_errors: dict[str, Exception] = {}
        self.put_errors: dict[str, Exception] = {}
        self.unlink_errors: dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.calls: dict[str, list] = {
            "info": [],
            "put": [],
            "list_tree": [],
            "unlink": [],
        }
        self.put_kwargs: dict[str, dict] = {}
        self.close_count = 0
        self.active = 0
        self.peak = 0
        self.gate: Optional[asyncio.Event] = None

    async def _enter(self) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(self.delay)

    def _exit(self) -> None:
        self.active -= 1

    async def info(self, path: str) -> ObjectMetadata:
        self.calls["info"].append(path)
        await self._enter()
        try:
            if path in self.info_errors:
                raise self.info_errors[path]
            if path in self.directories:
                return ObjectMetadata(
                    path=path,
                    size=None,
                    content_type="application/x-json-stream; type=directory",
                    is_directory=True,
                )
            if path not in self.objects:
                raise NotFoundError(f"{path}: not found", 404)
            data = self.objects[path]
            md5 = md5_b64(data) if data else None
            return ObjectMetadata(path=path, size=str(len(data)), content_md5=md5)
        finally:
            self._exit()

    async def put(self, path, body, size, copies=2, headers=None):
        self.calls["put"].append(path)
        self.put_kwargs[path] = {"size": size, "copies": copies, "headers": headers}
        await self._enter()
        try:
            if path in self.put_errors:
                raise self.put_errors[path]
            chunks = [chunk async for chunk in body()]
            self.objects[path] = b"".join(chunks)
        finally:
            self._exit()

    @staticmethod
    def _parents(path: str, prefix: str) -> list[str]:
        """Directories between ``prefix`` and the object at ``path``."""
        parts = path[len(prefix) :].split("/")[:-1]
        return [prefix + "/".join(parts[: i + 1]) for i in range(len(parts))]

    async def list_tree(self, root: str, concurrency: int = 50):
        self.calls["list_tree"].append(root)
        prefix = root.rstrip("/") + "/"
        paths = [path for path in self.objects if path.startswith(prefix)]
        directories = {
            parent
            for path in paths
            for parent in self._parents(path, prefix)
        }
        directories.update(d for d in self.directories if d.startswith(prefix))
        for path in sorted(directories):
            parent, name = path.rsplit("/", 1)
            yield RemoteEntry(parent=parent, name=name, type="directory")
        for path in sorted(paths):
            parent, name = path.rsplit("/", 1)
            yield RemoteEntry(parent=parent, name=name, type="object")
        if self.list_error is not None:
            raise self.list_error

    async def unlink(self, path: str) -> None:
        self.calls["unlink"].append(path)
        await self._enter()
        try:
            if path in self.unlink_errors:
                raise self.unlink_errors[path]
            del self.objects[path]
        finally:
            self._exit()

    async def close(self) -> None:
        self.close_count += 1


def md5_b64(data: bytes) -> str:
    return base64.b64encode(hashlib.md5(data).digest()).decode()


def make_output() -> OutputFormatter:
    """Build an OutputFormatter writing to in-memory buffers."""
    stdout = io.StringIO()
    stderr = io.StringIO()
    output = OutputFormatter(
        console=Console(file=stdout, width=200, highlight=False),
        err_console=Console(file=stderr, width=200, highlight=False),
    )
    output.stdout = stdout  # type: ignore[attr-defined]
    output.stderr = stderr  # type: ignore[attr-defined]
    return output
