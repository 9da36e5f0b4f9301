"""
FIFO backlog of task ids waiting for a dispatch slot.
"""

from collections import OrderedDict
from typing import Iterator

from swiftdrop.exceptions import DuplicateTaskError


class AdmissionQueue:
    """
    Ordered set of queued task ids.

    None of the operations suspend, so when used from a single event loop a
    drain can never interleave with another drain.
    """

    def __init__(self):
        self._ids: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def enqueue(self, task_id: str) -> None:
        """Appends a task id to the back of the queue."""
        if task_id in self._ids:
            raise DuplicateTaskError(task_id)
        self._ids[task_id] = None

    def drain(self, n: int) -> list[str]:
        """Removes and returns up to `n` ids from the front of the queue."""
        claimed = []
        while self._ids and len(claimed) < n:
            task_id, _ = self._ids.popitem(last=False)
            claimed.append(task_id)
        return claimed

    def remove(self, task_id: str) -> bool:
        """Drops a task id if it is still waiting. Returns whether it was queued."""
        if task_id not in self._ids:
            return False
        del self._ids[task_id]
        return True

    def snapshot(self) -> list[str]:
        return list(self._ids)
