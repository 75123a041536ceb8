"""Pytest fixtures for stockbatch tests."""

import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from stockbatch.config import Settings
from stockbatch.models.job import GenerationResult, Job
from stockbatch.models.run import RunMode


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingProvider:
    """Generation capability that records calls and checks key exclusivity.

    ``script`` maps a job label to a list of exceptions raised on successive
    calls for that job; once exhausted the call succeeds.
    """

    def __init__(
        self,
        script: Optional[Dict[str, List[Exception]]] = None,
        delay: float = 0.0,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.delay = delay
        self.gate = gate
        self.calls: List[tuple] = []
        self.in_flight: set = set()
        self.max_in_flight = 0
        self.double_booked = False

    async def __call__(self, job: Job, credential: str, mode: RunMode) -> GenerationResult:
        if credential in self.in_flight:
            self.double_booked = True
        self.in_flight.add(credential)
        self.max_in_flight = max(self.max_in_flight, len(self.in_flight))
        self.calls.append((job.label, credential, asyncio.get_running_loop().time()))
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delay)
            pending_errors = self.script.get(job.label)
            if pending_errors:
                raise pending_errors.pop(0)
            return GenerationResult(result={"title": f"{job.label} title"})
        finally:
            self.in_flight.discard(credential)


@pytest.fixture
def fast_settings(tmp_path) -> Settings:
    """Settings with every delay shrunk for tests."""
    return Settings(
        api_keys=[],
        worker_count=10,
        key_cooldown_seconds=0.05,
        no_key_backoff_seconds=0.005,
        worker_stagger_seconds=0.0,
        settle_delay_seconds=0.01,
        publish_interval_seconds=0.01,
        history_dir=str(tmp_path / "history"),
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider_factory() -> Callable[..., RecordingProvider]:
    return RecordingProvider


@pytest.fixture
def make_jobs() -> Callable[[int], List[Job]]:
    def _make(count: int, prefix: str = "job") -> List[Job]:
        return [Job(label=f"{prefix}-{i}", payload={"slot": i}) for i in range(1, count + 1)]

    return _make
