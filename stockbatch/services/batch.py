"""Builds the job list for a run."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from stockbatch.models.job import Job, JobStatus
from stockbatch.services.job_store import RUNNABLE_STATUSES, JobStateStore
from stockbatch.utils.errors import PreconditionError

logger = logging.getLogger(__name__)

IDEA_CATEGORIES = (
    "auto",
    "lifestyle",
    "business",
    "nature",
    "food",
    "science",
    "travel",
    "architecture",
    "social",
    "sports",
    "abstract",
    "custom",
)


def select_jobs_for_run(store: JobStateStore) -> List[Job]:
    """
    Pick the jobs a new run should process.

    Pending and failed jobs are retried. When every job already finished,
    the whole batch is reset to pending and processed again.

    Args:
        store: Job state store holding the current batch

    Returns:
        Jobs to queue, in store order
    """
    jobs = store.snapshot()
    targets = [j for j in jobs if j.status in RUNNABLE_STATUSES]
    if targets:
        return targets

    for job in jobs:
        if job.status != JobStatus.PROCESSING:
            store.mark_pending(job.id)
    if jobs:
        logger.info(f"All {len(jobs)} jobs finished; resetting batch to pending")
    return [j for j in store.snapshot() if j.status == JobStatus.PENDING]


def build_prompt_slots(
    idea: str,
    description: str = "",
    quantity: int = 30,
    limit: int = 50,
) -> List[Job]:
    """
    Create one job per image-generation prompt to write.

    Raises:
        PreconditionError: If the idea is empty or quantity is not positive
    """
    if not idea or not idea.strip():
        raise PreconditionError("Please enter an idea or niche.")
    if quantity <= 0:
        raise PreconditionError("Quantity must be greater than 0.")

    count = min(limit, quantity)
    logger.info(f"Generated {count} prompt slots. Idea: {idea}")
    return [
        Job(
            label=f"Prompt_{i}",
            payload={"slot": i, "idea": idea.strip(), "description": description},
        )
        for i in range(1, count + 1)
    ]


def build_idea_slots(
    category: str = "auto",
    quantity: int = 30,
    custom_topic: Optional[str] = None,
    limit: int = 50,
) -> List[Job]:
    """
    Create one job per content idea to generate.

    Quantity is clamped to 1..limit. The ``custom`` category needs a topic.

    Raises:
        PreconditionError: For an unknown category or a missing custom topic
    """
    if category not in IDEA_CATEGORIES:
        raise PreconditionError(f"Unknown idea category: {category}")
    if category == "custom" and not (custom_topic and custom_topic.strip()):
        raise PreconditionError("Enter custom topic.")

    context = custom_topic.strip() if category == "custom" else category
    count = min(limit, max(1, quantity))
    return [
        Job(
            label=f"Idea_{i}",
            payload={"slot": i, "context": context, "category": category},
        )
        for i in range(1, count + 1)
    ]


def build_file_jobs(paths: Iterable[str]) -> List[Job]:
    """One metadata job per media file. The payload keeps the path as given."""
    jobs = [Job(label=Path(p).name, payload={"path": str(p)}) for p in paths]
    if jobs:
        logger.info(f"Added {len(jobs)} files to METADATA")
    return jobs
