"""FIFO queue of job ids awaiting processing."""

from collections import deque
from typing import Deque, Iterable, Iterator, Optional


class JobQueue:
    """Ordered job ids. Pops from the head; requeues at either end."""

    def __init__(self, job_ids: Iterable[str] = ()) -> None:
        self._ids: Deque[str] = deque()
        for job_id in job_ids:
            self.enqueue(job_id)

    def enqueue(self, job_id: str) -> None:
        self._ids.append(job_id)

    def dequeue_head(self) -> Optional[str]:
        if not self._ids:
            return None
        return self._ids.popleft()

    def requeue_head(self, job_id: str) -> None:
        """Put a job back in front, keeping its turn (no key was free)."""
        self._ids.appendleft(job_id)

    def requeue_tail(self, job_id: str) -> None:
        """Send a job to the back so others go first (transient failure)."""
        self._ids.append(job_id)

    def __len__(self) -> int:
        return len(self._ids)

    def __bool__(self) -> bool:
        return bool(self._ids)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))
