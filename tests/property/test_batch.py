"""Tests for batch planning: which jobs a run picks up and how slots are built.

Feature: stockbatch
"""

import pytest
from hypothesis import given, settings, strategies as st

from stockbatch.models.job import GenerationResult, Job, JobStatus
from stockbatch.services.batch import (
    IDEA_CATEGORIES,
    build_file_jobs,
    build_idea_slots,
    build_prompt_slots,
    select_jobs_for_run,
)
from stockbatch.services.job_store import JobStateStore
from stockbatch.utils.errors import PreconditionError


def finished_store(count: int) -> JobStateStore:
    jobs = [Job(label=f"j{i}") for i in range(count)]
    store = JobStateStore(jobs)
    for job in jobs:
        store.mark_completed(job.id, GenerationResult(result={"title": job.label}))
    return store


class TestSelectJobsForRun:
    def test_picks_pending_and_failed_only(self) -> None:
        pending, failed, done = Job(label="p"), Job(label="f"), Job(label="d")
        store = JobStateStore([pending, failed, done])
        store.mark_failed(failed.id, "invalid request")
        store.mark_completed(done.id, GenerationResult(result={}))

        selected = select_jobs_for_run(store)

        assert [j.label for j in selected] == ["p", "f"]
        assert store.get(done.id).status == JobStatus.COMPLETED

    @settings(max_examples=30)
    @given(count=st.integers(min_value=1, max_value=15))
    def test_finished_batch_is_reset(self, count: int) -> None:
        store = finished_store(count)

        selected = select_jobs_for_run(store)

        assert len(selected) == count
        assert all(j.status == JobStatus.PENDING and j.result is None for j in selected)
        assert store.counts()[JobStatus.PENDING] == count

    def test_processing_jobs_are_left_alone_on_reset(self) -> None:
        store = finished_store(2)
        busy = Job(label="busy")
        store.add([busy])
        store.mark_processing(busy.id)

        selected = select_jobs_for_run(store)

        assert busy.id not in [j.id for j in selected]
        assert store.get(busy.id).status == JobStatus.PROCESSING

    def test_empty_store(self) -> None:
        assert select_jobs_for_run(JobStateStore()) == []


class TestPromptSlots:
    def test_labels_and_payload(self) -> None:
        jobs = build_prompt_slots("  coffee shop  ", "warm light", quantity=3)
        assert [j.label for j in jobs] == ["Prompt_1", "Prompt_2", "Prompt_3"]
        assert jobs[0].payload == {"slot": 1, "idea": "coffee shop", "description": "warm light"}
        assert all(j.status == JobStatus.PENDING for j in jobs)

    @settings(max_examples=50)
    @given(quantity=st.integers(min_value=1, max_value=200))
    def test_quantity_capped_at_limit(self, quantity: int) -> None:
        jobs = build_prompt_slots("idea", quantity=quantity, limit=50)
        assert len(jobs) == min(quantity, 50)

    @pytest.mark.parametrize("idea", ["", "   "])
    def test_blank_idea_rejected(self, idea: str) -> None:
        with pytest.raises(PreconditionError, match="idea"):
            build_prompt_slots(idea)

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, quantity: int) -> None:
        with pytest.raises(PreconditionError):
            build_prompt_slots("idea", quantity=quantity)


class TestIdeaSlots:
    @settings(max_examples=50)
    @given(quantity=st.integers(min_value=-10, max_value=200))
    def test_quantity_clamped(self, quantity: int) -> None:
        jobs = build_idea_slots("nature", quantity=quantity, limit=50)
        assert len(jobs) == min(50, max(1, quantity))
        assert jobs[-1].label == f"Idea_{len(jobs)}"

    @pytest.mark.parametrize("category", [c for c in IDEA_CATEGORIES if c != "custom"])
    def test_category_becomes_context(self, category: str) -> None:
        job = build_idea_slots(category, quantity=1)[0]
        assert job.payload == {"slot": 1, "context": category, "category": category}

    def test_custom_topic(self) -> None:
        job = build_idea_slots("custom", quantity=1, custom_topic=" vintage cars ")[0]
        assert job.payload["context"] == "vintage cars"

    @pytest.mark.parametrize("topic", [None, "", "  "])
    def test_custom_without_topic_rejected(self, topic) -> None:
        with pytest.raises(PreconditionError, match="custom topic"):
            build_idea_slots("custom", custom_topic=topic)

    def test_unknown_category_rejected(self) -> None:
        with pytest.raises(PreconditionError):
            build_idea_slots("underwater-basketweaving")


def test_file_jobs_use_file_name_as_label() -> None:
    jobs = build_file_jobs(["/media/shoot/IMG_0001.jpg", "clip.mp4"])
    assert [j.label for j in jobs] == ["IMG_0001.jpg", "clip.mp4"]
    assert jobs[0].payload == {"path": "/media/shoot/IMG_0001.jpg"}
    assert build_file_jobs([]) == []
