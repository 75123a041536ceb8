"""Run-level Pydantic models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RunMode(str, Enum):
    """What the jobs of a run generate."""

    METADATA = "metadata"
    IDEA = "idea"
    PROMPT = "prompt"


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"


class RunSummary(BaseModel):
    """Outcome of one run, handed to completion listeners."""

    mode: RunMode
    total: int = Field(ge=0)
    completed: int = Field(ge=0)
    failed: int = Field(ge=0)
    pending: int = Field(ge=0)
    cancelled: bool = False
    started_at: datetime
    finished_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


class RunStatus(BaseModel):
    """Point-in-time view of the run controller for observers."""

    state: RunState
    mode: Optional[RunMode] = None
    queued: int = 0
    active_workers: int = 0
    effective_concurrency: int = 0
    cooling_keys: list[int] = Field(default_factory=list)
    cancelled: bool = False
