"""
A transfer engine that fakes network uploads with a timed chunk loop.
"""

import asyncio
import logging
import random
from typing import Optional
from urllib.parse import quote

from swiftdrop.exceptions import TransferError
from swiftdrop.models.task import UploadTask

from .base import AbortSignal, ProgressCallback, run_abortable

log = logging.getLogger(__name__)


class SimulatedTransferEngine:
    """
    Pretends to upload a file in ~50 chunks with random per-chunk latency and an
    optional random failure rate. Pass `seed` for a reproducible run.
    """

    MIN_CHUNK_SIZE = 8192  # 8 KB
    CHUNKS_PER_FILE = 50

    def __init__(
        self,
        min_delay: float = 0.05,
        max_delay: float = 0.15,
        failure_rate: float = 0.01,
        seed: Optional[int] = None,
        base_url: str = "https://example.com/files",
    ):
        if min_delay < 0 or max_delay < min_delay:
            raise ValueError("Delays must satisfy 0 <= min_delay <= max_delay.")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("Failure rate must be between 0 and 1.")
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.failure_rate = failure_rate
        self.base_url = base_url.rstrip("/")
        self._random = random.Random(seed)

    def result_location(self, task: UploadTask) -> str:
        return f"{self.base_url}/{task.id}/{quote(task.name)}"

    async def transfer(
        self, task: UploadTask, on_progress: ProgressCallback, abort: AbortSignal
    ) -> str:
        total = task.size
        chunk_size = max(total // self.CHUNKS_PER_FILE, self.MIN_CHUNK_SIZE)
        uploaded = 0

        while uploaded < total:
            abort.raise_if_aborted()
            delay = self._random.uniform(self.min_delay, self.max_delay)
            await run_abortable(asyncio.sleep(delay), abort)

            uploaded += min(chunk_size, total - uploaded)
            on_progress(uploaded)

            if self._random.random() < self.failure_rate:
                log.debug(f"Simulated failure for '{task.name}' at {uploaded}/{total} bytes")
                raise TransferError("Upload failed due to network error")

        abort.raise_if_aborted()
        return self.result_location(task)
