"""Async API client for HTTP object stores."""

from __future__ import annotations

import asyncio
import json
import logging
import posixpath
import random
from collections.abc import AsyncIterator
from typing import Any, Callable
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    AuthenticationError,
    DeleteError,
    InvalidResponseError,
    ListError,
    NetworkError,
    NotFoundError,
    ObjSyncAPIError,
    ObjSyncConfigError,
    PermissionDeniedError,
    RateLimitError,
    UploadError,
)
from .models import DIRECTORY_TYPE, ObjectMetadata, RemoteEntry
from .utils import (
    DEFAULT_CONCURRENCY,
    DEFAULT_COPIES,
    DEFAULT_LIST_LIMIT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
)

logger = logging.getLogger(__name__)

DIRECTORY_CONTENT_TYPE = "application/json; type=directory"
LISTING_CONTENT_TYPE = "application/x-json-stream"

BodyFactory = Callable[[], AsyncIterator[bytes]]


class ObjectStoreClient:
    """Client for a hierarchical HTTP object store.

    Objects are addressed by path below the base URL. Directories are
    created with a ``PUT`` carrying a directory content type and listed
    with ``GET``, which returns newline-delimited JSON entries.
    """

    def __init__(
        self,
        api_url: str | None = None,
        token: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        list_limit: int = DEFAULT_LIST_LIMIT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize object store client.

        Args:
            api_url: Base URL of the store (uses config if not provided)
            token: Optional bearer token (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            list_limit: Page size for directory listings
            transport: Optional httpx transport (used by tests)
        """
        api_url = api_url or config.api_url
        if not api_url:
            raise ObjSyncConfigError(
                "Object store URL not configured. "
                "Please set OBJSYNC_URL or run 'objsync init'."
            )
        self.api_url = api_url.rstrip("/")
        self.token = token or config.token
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.list_limit = list_limit
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client and release connections.

        Safe to call more than once.
        """
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> ObjectStoreClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _url(self, path: str) -> str:
        return self.api_url + quote("/" + path.lstrip("/"), safe="/")

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        if isinstance(exception, (NetworkError, RateLimitError)):
            return True

        # Server errors (5xx) are transient, client errors are not
        if isinstance(exception, ObjSyncAPIError) and exception.status_code:
            return 500 <= exception.status_code < 600

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_from_response(
        self, response: httpx.Response, path: str
    ) -> ObjSyncAPIError:
        """Map an error response to an exception.

        Args:
            response: The failed response
            path: Remote path of the request

        Returns:
            Exception describing the failure
        """
        status_code = response.status_code
        code: str | None = None
        message = f"request failed with status {status_code}"

        # Try to extract more details from response body
        if response.content:
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
            if isinstance(error_data, dict):
                code = error_data.get("code")
                msg = error_data.get("message") or error_data.get("error")
                if msg:
                    message = str(msg)

        message = f"{path}: {message}"
        if status_code == 401:
            return AuthenticationError(message, status_code, code)
        elif status_code == 403:
            return PermissionDeniedError(message, status_code, code)
        elif status_code == 404:
            return NotFoundError(message, status_code, code)
        elif status_code == 429:
            return RateLimitError(message, status_code, code)
        return ObjSyncAPIError(message, status_code, code)

    async def _request(
        self,
        method: str,
        path: str,
        body: BodyFactory | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            path: Remote path
            body: Optional factory producing a fresh request body stream
                for every attempt
            **kwargs: Additional arguments passed to httpx

        Returns:
            The successful response

        Raises:
            ObjSyncAPIError: If the request fails after all retries
        """
        url = self._url(path)
        client = self._get_client()
        last_exception: ObjSyncAPIError | None = None

        for attempt in range(self.max_retries + 1):
            if body is not None:
                kwargs["content"] = body()
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                error: ObjSyncAPIError = NetworkError(f"{path}: network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        "%s %s failed (%s), retrying in %.1fs", method, path, e, delay
                    )
                    await asyncio.sleep(delay)
                    continue
                raise error from e

            if response.is_success:
                return response

            error = self._error_from_response(response, path)
            last_exception = error
            if self._should_retry(error, attempt):
                # Special handling for rate limits: use Retry-After header
                retry_after = response.headers.get("Retry-After")
                if isinstance(error, RateLimitError) and retry_after:
                    if retry_after.isdigit():
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                else:
                    delay = self._calculate_retry_delay(attempt)
                logger.debug(
                    "%s %s returned %d, retrying in %.1fs",
                    method,
                    path,
                    response.status_code,
                    delay,
                )
                await asyncio.sleep(delay)
                continue
            raise error

        # If we get here, we've exhausted all retries
        if last_exception:
            raise last_exception
        raise ObjSyncAPIError(f"{path}: request failed after all retry attempts")

    # =========================
    # Metadata
    # =========================

    async def info(self, path: str) -> ObjectMetadata:
        """Look up metadata of a remote object or directory.

        Args:
            path: Remote path

        Returns:
            ObjectMetadata for the path

        Raises:
            NotFoundError: If nothing exists at the path
            ObjSyncAPIError: On any other failure
        """
        response = await self._request("HEAD", path)
        headers = response.headers
        content_type = headers.get("Content-Type", "")
        return ObjectMetadata(
            path=path,
            size=headers.get("Content-Length"),
            content_md5=headers.get("Content-MD5"),
            content_type=content_type,
            is_directory="type=directory" in content_type,
        )

    # =========================
    # Upload Operations
    # =========================

    async def put(
        self,
        path: str,
        body: BodyFactory,
        size: int,
        copies: int = DEFAULT_COPIES,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Upload an object from a byte stream.

        Missing parent directories are created automatically.

        Args:
            path: Remote object path
            body: Factory returning a fresh async byte stream; called again
                if the upload has to be retried
            size: Exact number of bytes the stream yields
            copies: Number of copies the store should keep
            headers: Extra request headers, passed through untouched

        Raises:
            UploadError: If the upload fails
        """
        request_headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(size),
            "Durability-Level": str(copies),
        }
        request_headers.update(headers or {})

        try:
            try:
                await self._request("PUT", path, body=body, headers=request_headers)
            except NotFoundError:
                parent = posixpath.dirname(path)
                logger.debug("Parent of %s missing, creating %s", path, parent)
                await self.mkdirp(parent)
                await self._request("PUT", path, body=body, headers=request_headers)
        except UploadError:
            raise
        except ObjSyncAPIError as e:
            raise UploadError(str(e), e.status_code, e.error_code) from e

    async def mkdir(self, path: str) -> None:
        """Create a single remote directory (idempotent).

        Raises:
            NotFoundError: If the parent directory does not exist
            ObjSyncAPIError: On any other failure
        """
        await self._request(
            "PUT",
            path,
            headers={"Content-Type": DIRECTORY_CONTENT_TYPE},
            content=b"",
        )

    async def mkdirp(self, path: str) -> None:
        """Create a remote directory and any missing ancestors."""
        if not path or path == "/":
            return
        try:
            await self.mkdir(path)
        except NotFoundError:
            await self.mkdirp(posixpath.dirname(path))
            await self.mkdir(path)

    # =========================
    # Listing
    # =========================

    def _parse_listing(self, response: httpx.Response, path: str) -> list[dict]:
        content_type = response.headers.get("Content-Type", "")
        if LISTING_CONTENT_TYPE not in content_type:
            raise InvalidResponseError(
                f"{path}: not a directory listing ({content_type or 'no type'})"
            )

        entries: list[dict] = []
        for line in response.text.splitlines():
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except ValueError as e:
                raise InvalidResponseError(
                    f"{path}: invalid listing entry: {line!r}"
                ) from e
            if not isinstance(entry, dict) or "name" not in entry:
                raise InvalidResponseError(f"{path}: invalid listing entry: {line!r}")
            entries.append(entry)
        return entries

    async def list_dir(self, path: str) -> AsyncIterator[dict]:
        """Iterate the raw entries of one remote directory.

        Pages through the listing with ``limit``/``marker``. The server
        repeats the marker entry at the start of the next page; it is
        skipped.

        Args:
            path: Remote directory path

        Yields:
            Entry dictionaries with at least ``name`` and ``type``
        """
        marker: str | None = None
        while True:
            params = {"limit": str(self.list_limit)}
            if marker is not None:
                params["marker"] = marker
            response = await self._request("GET", path, params=params)
            entries = self._parse_listing(response, path)

            for entry in entries:
                if marker is not None and entry["name"] == marker:
                    continue
                yield entry

            if len(entries) < self.list_limit:
                break
            next_marker = entries[-1]["name"]
            if next_marker == marker:
                break
            marker = next_marker

    async def _collect_dir(self, path: str) -> list[RemoteEntry]:
        return [
            RemoteEntry(
                parent=path,
                name=entry["name"],
                type=entry.get("type", ""),
                size=entry.get("size"),
            )
            async for entry in self.list_dir(path)
        ]

    async def list_tree(
        self, root: str, concurrency: int = DEFAULT_CONCURRENCY
    ) -> AsyncIterator[RemoteEntry]:
        """Recursively list every entry below a remote directory.

        Directories are walked breadth-first with up to ``concurrency``
        listings outstanding at a time.

        Args:
            root: Remote directory to walk
            concurrency: Maximum number of concurrent directory listings

        Yields:
            RemoteEntry for every object and directory below ``root``

        Raises:
            NotFoundError: If ``root`` does not exist
            ListError: If any listing fails
        """
        pending = [root]
        while pending:
            batch, pending = pending[:concurrency], pending[concurrency:]
            results = await asyncio.gather(
                *(self._collect_dir(path) for path in batch),
                return_exceptions=True,
            )
            for path, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if isinstance(result, NotFoundError) and path == root:
                        raise result
                    if isinstance(result, ObjSyncAPIError):
                        raise ListError(
                            str(result), result.status_code, result.error_code
                        ) from result
                    raise result

                for entry in result:
                    if entry.type == DIRECTORY_TYPE:
                        pending.append(entry.remote_path)
                    yield entry

    # =========================
    # Delete Operations
    # =========================

    async def unlink(self, path: str) -> None:
        """Delete a remote object.

        Raises:
            DeleteError: If the deletion fails
        """
        try:
            await self._request("DELETE", path)
        except ObjSyncAPIError as e:
            raise DeleteError(str(e), e.status_code, e.error_code) from e
