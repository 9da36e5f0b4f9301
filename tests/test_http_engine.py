# tests/test_http_engine.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from swiftdrop.core.scheduler import UploadScheduler
from swiftdrop.exceptions import TransferAborted, TransferError
from swiftdrop.models.policy import UploadPolicy
from swiftdrop.models.task import FileDescriptor, TaskStatus, UploadTask
from swiftdrop.transfer.base import AbortSignal
from swiftdrop.transfer.http import HttpTransferEngine, is_compressible

from .fakes import settle


@dataclass
class ReceivedPart:
    field_name: str
    filename: str
    headers: dict
    data: bytes
    request_encoding: Optional[str] = None


@dataclass
class UploadEndpoint:
    """In-process upload endpoint. `script` lists status codes to answer with first."""

    script: list[int] = field(default_factory=list)
    received: list[ReceivedPart] = field(default_factory=list)
    url: str = ""
    hang: bool = False
    location_header: bool = False
    release: asyncio.Event = field(default_factory=asyncio.Event)

    async def handle(self, request: web.Request) -> web.StreamResponse:
        reader = await request.multipart()
        part = await reader.next()
        data = await part.read(decode=True)
        self.received.append(
            ReceivedPart(
                part.name,
                part.filename,
                dict(part.headers),
                bytes(data),
                request.headers.get("Content-Encoding"),
            )
        )
        if self.hang:
            await self.release.wait()

        status = self.script.pop(0) if self.script else 200
        if status >= 400:
            return web.Response(status=status, text="nope")
        if self.location_header:
            return web.Response(
                status=201, text="created", headers={"Location": f"/files/{part.filename}"}
            )
        return web.json_response({"location": f"https://cdn.example/{part.filename}"})


@pytest_asyncio.fixture()
async def endpoint():
    upload_endpoint = UploadEndpoint()
    app = web.Application()
    app.router.add_post("/upload", upload_endpoint.handle)
    server = TestServer(app)
    await server.start_server()
    upload_endpoint.url = str(server.make_url("/upload"))
    try:
        yield upload_endpoint
    finally:
        upload_endpoint.release.set()
        await server.close()


def _task(source, name: str = "report.pdf", mime_type: str = "application/pdf") -> UploadTask:
    size = len(source) if isinstance(source, bytes) else Path(source).stat().st_size
    return UploadTask(id="t1", name=name, size=size, mime_type=mime_type, source=source)


@pytest.mark.asyncio
async def test_uploads_bytes_as_multipart_and_reads_json_location(endpoint) -> None:
    payload = b"%PDF" + b"x" * 600_000
    reported: list[int] = []

    async with HttpTransferEngine(endpoint.url, chunk_size=65536) as engine:
        location = await engine.transfer(_task(payload), reported.append, AbortSignal())

    assert location == "https://cdn.example/report.pdf"
    (part,) = endpoint.received
    assert (part.field_name, part.filename) == ("file", "report.pdf")
    assert part.headers["Content-Type"] == "application/pdf"
    assert part.data == payload
    assert reported == sorted(reported)
    assert reported[-1] == len(payload)


@pytest.mark.asyncio
async def test_uploads_file_from_disk(endpoint, tmp_path: Path) -> None:
    source = tmp_path / "notes.txt"
    source.write_bytes(b"hello world\n" * 1000)
    endpoint.location_header = True

    async with HttpTransferEngine(endpoint.url, field_name="upload") as engine:
        location = await engine.transfer(
            _task(source, "notes.txt", "text/plain"), lambda _: None, AbortSignal()
        )

    assert location == "/files/notes.txt"
    assert endpoint.received[0].field_name == "upload"
    assert endpoint.received[0].data == source.read_bytes()


@pytest.mark.asyncio
async def test_auto_compress_gzips_text_uploads(endpoint) -> None:
    payload = b"a,b,c\n" * 5000
    reported: list[int] = []

    async with HttpTransferEngine(endpoint.url) as engine:
        engine.apply_policy(UploadPolicy(auto_compress=True))
        await engine.transfer(
            _task(payload, "data.csv", "text/csv"), reported.append, AbortSignal()
        )

    (part,) = endpoint.received
    assert part.request_encoding == "gzip"
    assert "Content-Encoding" not in part.headers
    assert part.headers["Content-Type"] == "text/csv"
    assert part.data == payload
    assert reported[-1] == len(payload)


@pytest.mark.asyncio
async def test_auto_compress_leaves_binary_uploads_alone(endpoint) -> None:
    payload = b"\x89PNG" + b"\x00" * 4000

    async with HttpTransferEngine(endpoint.url, auto_compress=True) as engine:
        await engine.transfer(
            _task(payload, "pic.png", "image/png"), lambda _: None, AbortSignal()
        )

    (part,) = endpoint.received
    assert part.request_encoding is None
    assert part.data == payload


def test_only_text_like_types_are_compressible() -> None:
    assert is_compressible("text/plain")
    assert is_compressible("application/json")
    assert not is_compressible("image/png")


@pytest.mark.asyncio
async def test_server_errors_are_retried(endpoint) -> None:
    endpoint.script = [500, 503]
    reported: list[int] = []

    async with HttpTransferEngine(endpoint.url, max_attempts=3, base_delay=0) as engine:
        location = await engine.transfer(_task(b"x" * 1000), reported.append, AbortSignal())

    assert location == "https://cdn.example/report.pdf"
    assert len(endpoint.received) == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(endpoint) -> None:
    endpoint.script = [500, 500]

    async with HttpTransferEngine(endpoint.url, max_attempts=2, base_delay=0) as engine:
        with pytest.raises(TransferError, match="after 2 attempts"):
            await engine.transfer(_task(b"x"), lambda _: None, AbortSignal())

    assert len(endpoint.received) == 2


@pytest.mark.asyncio
async def test_client_errors_fail_fast(endpoint) -> None:
    endpoint.script = [413]

    async with HttpTransferEngine(endpoint.url, max_attempts=3, base_delay=0) as engine:
        with pytest.raises(TransferError, match="HTTP 413"):
            await engine.transfer(_task(b"x"), lambda _: None, AbortSignal())

    assert len(endpoint.received) == 1


@pytest.mark.asyncio
async def test_missing_source_file_fails(endpoint, tmp_path: Path) -> None:
    task = UploadTask(id="t1", name="gone.pdf", size=10, mime_type="application/pdf",
                      source=tmp_path / "gone.pdf")

    async with HttpTransferEngine(endpoint.url) as engine:
        with pytest.raises(TransferError, match="no longer available"):
            await engine.transfer(task, lambda _: None, AbortSignal())

    assert endpoint.received == []


@pytest.mark.asyncio
async def test_abort_interrupts_a_request_in_flight(endpoint) -> None:
    endpoint.hang = True
    abort = AbortSignal()
    asyncio.get_running_loop().call_later(0.2, abort.abort, "stop")

    async with HttpTransferEngine(endpoint.url) as engine:
        with pytest.raises(TransferAborted, match="stop"):
            await engine.transfer(_task(b"x" * 100), lambda _: None, abort)


@pytest.mark.asyncio
async def test_scheduler_uploads_through_http_engine(endpoint) -> None:
    policy = UploadPolicy(allowed_types=["text/plain"], max_concurrent_uploads=2)
    files = [FileDescriptor.from_bytes(f"{i}.txt", f"file {i}".encode()) for i in range(3)]

    async with HttpTransferEngine(endpoint.url) as engine:
        async with UploadScheduler(engine, policy) as scheduler:
            ids = scheduler.submit(files).accepted
            await scheduler.join()
            await settle()

            tasks = [scheduler.get(task_id) for task_id in ids]

    assert [t.status for t in tasks] == [TaskStatus.COMPLETED] * 3
    assert tasks[0].result_location == "https://cdn.example/0.txt"
    assert sorted(p.data for p in endpoint.received) == [b"file 0", b"file 1", b"file 2"]
