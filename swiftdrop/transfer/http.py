"""
Uploads files as multipart/form-data over HTTP with retry logic and
optional on-the-fly compression.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles
import aiohttp

from swiftdrop.exceptions import TransferError
from swiftdrop.models.policy import UploadPolicy
from swiftdrop.models.task import UploadTask

from .base import AbortSignal, ProgressCallback, run_abortable

log = logging.getLogger(__name__)

COMPRESSIBLE_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/javascript",
        "image/svg+xml",
    }
)


class ServerError(aiohttp.ClientError):
    """A 5xx answer from the upload endpoint. Retried like a connection error."""

    def __init__(self, status: int, body: str):
        super().__init__(f"Server responded with HTTP {status}: {body}")
        self.status = status


def is_compressible(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in COMPRESSIBLE_TYPES


class HttpTransferEngine:
    """Streams each task's data to an upload endpoint through a shared session."""

    DEFAULT_CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        upload_url: str,
        field_name: str = "file",
        max_attempts: int = 3,
        base_delay: float = 1.5,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        auto_compress: bool = False,
        timeout_seconds: float = 300.0,
        max_connections: int = 8,
        headers: Optional[dict[str, str]] = None,
    ):
        self.upload_url = upload_url
        self.field_name = field_name
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.chunk_size = chunk_size
        self.auto_compress = auto_compress
        self.timeout_seconds = timeout_seconds
        self.max_connections = max_connections
        self.headers = headers or {}
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    def apply_policy(self, policy: UploadPolicy) -> None:
        """Picks up auto_compress; the connection limit applies to the next session."""
        self.auto_compress = policy.auto_compress
        self.max_connections = policy.max_concurrent_uploads

    async def _get_session(self) -> aiohttp.ClientSession:
        """Gets or creates the aiohttp ClientSession shared by all uploads."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session

            connector = aiohttp.TCPConnector(
                limit=self.max_connections * 2,
                limit_per_host=self.max_connections,
                ttl_dns_cache=600,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds, sock_connect=15)
            self._session = aiohttp.ClientSession(
                connector=connector, timeout=timeout, headers=self.headers
            )
            log.debug(f"Created upload session with limit_per_host={self.max_connections}")
            return self._session

    async def close(self) -> None:
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
                log.debug("Upload session closed.")
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _read_chunks(self, source) -> AsyncIterator[bytes]:
        if isinstance(source, (bytes, bytearray)):
            for start in range(0, len(source), self.chunk_size):
                yield bytes(source[start : start + self.chunk_size])
            return
        async with aiofiles.open(source, "rb") as f:
            while chunk := await f.read(self.chunk_size):
                yield chunk

    async def _body(
        self, task: UploadTask, on_progress: ProgressCallback
    ) -> AsyncIterator[bytes]:
        """Yields the task's data, reporting source bytes as the transport takes them."""
        sent = 0
        async for chunk in self._read_chunks(task.source):
            yield chunk
            sent += len(chunk)
            on_progress(sent)

    async def _check_source(self, task: UploadTask) -> None:
        source = task.source
        if isinstance(source, (bytes, bytearray)):
            return
        if not isinstance(source, (str, Path)):
            raise TransferError(f"'{task.name}' has no data to upload.")
        if not await asyncio.to_thread(os.path.isfile, source):
            raise TransferError(f"Source file '{source}' is no longer available.")

    async def _result_location(self, response: aiohttp.ClientResponse) -> str:
        if response.content_type == "application/json":
            payload = await response.json()
            if isinstance(payload, dict):
                for key in ("location", "url"):
                    if payload.get(key):
                        return str(payload[key])
        if location := response.headers.get("Location"):
            return location
        return str(response.url)

    async def _send_once(self, task: UploadTask, on_progress: ProgressCallback) -> str:
        session = await self._get_session()

        # form-data parts may not carry a Content-Encoding, so the whole body is gzipped.
        compress = "gzip" if self.auto_compress and is_compressible(task.mime_type) else None

        with aiohttp.MultipartWriter("form-data") as writer:
            part = writer.append(
                self._body(task, on_progress), {aiohttp.hdrs.CONTENT_TYPE: task.mime_type}
            )
            part.set_content_disposition("form-data", name=self.field_name, filename=task.name)

        async with session.post(self.upload_url, data=writer, compress=compress) as response:
            if response.status >= 500:
                raise ServerError(response.status, (await response.text())[:200])
            if response.status >= 400:
                body = (await response.text())[:200]
                raise TransferError(f"Upload rejected with HTTP {response.status}: {body}")
            return await self._result_location(response)

    async def transfer(
        self, task: UploadTask, on_progress: ProgressCallback, abort: AbortSignal
    ) -> str:
        """Uploads one task, retrying connection errors and 5xx answers."""
        await self._check_source(task)

        last_exception: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            abort.raise_if_aborted()
            try:
                return await run_abortable(self._send_once(task, on_progress), abort)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Upload attempt {attempt}/{self.max_attempts} for "
                    f"'{task.name}' failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await run_abortable(
                        asyncio.sleep(self.base_delay * (2 ** (attempt - 1))), abort
                    )

        raise TransferError(
            f"Upload failed after {self.max_attempts} attempts: {last_exception}"
        ) from last_exception
