"""Job Pydantic models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Job(BaseModel):
    """One unit of work requiring one generation call."""

    id: str = Field(default_factory=lambda: uuid4().hex, min_length=1)
    label: str = ""
    status: JobStatus = JobStatus.PENDING
    payload: Any = None
    result: Optional[dict[str, Any]] = None
    artifact: Optional[str] = None  # e.g. thumbnail returned with the result
    error: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_outcome_matches_status(self) -> "Job":
        """Result only on completed jobs, error only on failed ones."""
        if self.status == JobStatus.COMPLETED:
            if self.result is None or self.error is not None:
                raise ValueError("completed job needs a result and no error")
        elif self.status == JobStatus.FAILED:
            if not self.error or self.result is not None:
                raise ValueError("failed job needs an error and no result")
        elif self.result is not None or self.error is not None:
            raise ValueError(f"{self.status.value} job cannot carry a result or error")
        if self.artifact is not None and self.result is None:
            raise ValueError("artifact is only set alongside a result")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def display_name(self) -> str:
        return self.label or self.id[:8]

    def replace(self, **changes: Any) -> "Job":
        """Validated copy with the given fields changed. The id never changes."""
        changes.pop("id", None)
        changes.setdefault("updated_at", datetime.utcnow())
        return Job(**{**dict(self), **changes})


class GenerationResult(BaseModel):
    """Output of one successful generation call."""

    result: dict[str, Any]
    artifact: Optional[str] = None
