"""Saved batch history for idea and prompt runs."""

import json
import logging
import os
from datetime import datetime
from typing import List, Sequence

from pydantic import ValidationError

from stockbatch.models.job import Job, JobStatus
from stockbatch.models.run import RunMode, RunSummary
from stockbatch.utils.errors import HistoryError

logger = logging.getLogger(__name__)

HISTORY_MODES = (RunMode.IDEA, RunMode.PROMPT)


class HistoryStore:
    """Keeps the last finished batch of each history mode in a JSON file."""

    def __init__(self, history_dir: str = ".history"):
        self.history_dir = history_dir

    def _path(self, mode: RunMode) -> str:
        return os.path.join(self.history_dir, f"last_{mode.value}_batch.json")

    def _save_data(self, mode: RunMode, jobs: Sequence[Job]):
        """Save batch data to file."""
        os.makedirs(self.history_dir, exist_ok=True)
        data = {
            "mode": mode.value,
            "jobs": [j.model_dump(mode="json") for j in jobs],
            "last_updated": datetime.now().isoformat(),
        }
        with open(self._path(mode), "w") as f:
            json.dump(data, f, indent=2)

    def _load_data(self, mode: RunMode) -> List[dict]:
        """Load batch data from file."""
        path = self._path(mode)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise HistoryError(f"Failed to read history for {mode.value}: {e}")
        return data.get("jobs", [])

    def save(self, mode: RunMode, jobs: Sequence[Job]) -> None:
        if mode not in HISTORY_MODES:
            return
        self._save_data(mode, jobs)
        logger.info(f"Batch saved to history ({mode.value}, {len(jobs)} items)")

    def load(self, mode: RunMode) -> List[Job]:
        """
        Restore the last saved batch.

        Restored jobs come back as completed; jobs saved without a result get
        an empty one so they still satisfy the job invariants.

        Raises:
            HistoryError: If the history file is unreadable or malformed
        """
        restored: List[Job] = []
        for raw in self._load_data(mode):
            try:
                job = Job.model_validate(raw)
            except ValidationError as e:
                raise HistoryError(f"Malformed history entry: {e}")
            restored.append(
                job.replace(status=JobStatus.COMPLETED, result=job.result or {}, error=None)
            )
        if restored:
            logger.info(f"Restored {len(restored)} items from history")
        return restored

    def has_history(self, mode: RunMode) -> bool:
        return os.path.exists(self._path(mode))

    def clear(self, mode: RunMode) -> None:
        path = self._path(mode)
        if os.path.exists(path):
            os.remove(path)

    def record_run(self, summary: RunSummary, jobs: List[Job]) -> None:
        """Completion listener: persist idea and prompt batches."""
        self.save(summary.mode, jobs)


def create_history_store(history_dir: str = ".history") -> HistoryStore:
    """Create a HistoryStore instance."""
    return HistoryStore(history_dir=history_dir)
