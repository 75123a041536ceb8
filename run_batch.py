#!/usr/bin/env python3
"""
stockbatch batch runner

Runs a batch through the multi-key queue against a simulated provider.
Useful to check key rotation, cooldown and worker settings before pointing
the queue at a real provider.

Usage:
    python run_batch.py --keys k1 k2 k3 --prompts "city at night" --quantity 20
    python run_batch.py --keys k1 k2 --ideas travel --quantity 10 --rate-limit 0.2
    python run_batch.py --serve --keys k1 k2     # HTTP API on port 3000
"""

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from dotenv import load_dotenv
load_dotenv()

from stockbatch.config import get_settings
from stockbatch.models.job import GenerationResult, Job
from stockbatch.models.run import RunMode
from stockbatch.services.batch import build_file_jobs, build_idea_slots, build_prompt_slots
from stockbatch.services.history import create_history_store
from stockbatch.services.job_store import JobStateStore
from stockbatch.services.scheduler import Scheduler
from stockbatch.utils.errors import PreconditionError, ProviderError


def print_banner():
    print("""
╔══════════════════════════════════════════════════════════════╗
║              📦  STOCKBATCH QUEUE RUNNER                     ║
║                                                              ║
║   Multi-key batch generation for stock media contributors    ║
╚══════════════════════════════════════════════════════════════╝
""")


def make_simulated_provider(rate_limit: float, failure: float, latency: float):
    """Generation capability that sleeps and fails at the given rates."""

    async def generate(job: Job, credential: str, mode: RunMode) -> GenerationResult:
        await asyncio.sleep(random.uniform(latency / 2, latency * 1.5))
        roll = random.random()
        if roll < rate_limit:
            raise ProviderError(429, "Resource has been exhausted (e.g. check quota).")
        if roll < rate_limit + failure:
            raise ProviderError(400, "Invalid request: simulated permanent failure")
        return GenerationResult(
            result={
                "title": f"Simulated {mode.value} for {job.display_name()}",
                "keywords": "simulated, stock, batch",
            }
        )

    return generate


def build_jobs(args) -> tuple[list[Job], RunMode]:
    settings = get_settings()
    if args.prompts:
        jobs = build_prompt_slots(
            args.prompts, args.description, args.quantity, settings.slot_quantity_limit
        )
        return jobs, RunMode.PROMPT
    if args.ideas:
        jobs = build_idea_slots(
            args.ideas, args.quantity, args.topic, settings.slot_quantity_limit
        )
        return jobs, RunMode.IDEA
    return build_file_jobs(args.files), RunMode.METADATA


async def run_batch(args) -> int:
    settings = get_settings()
    keys = args.keys or settings.api_keys

    try:
        jobs, mode = build_jobs(args)
    except PreconditionError as e:
        print(f"❌ {e}")
        return 2

    store = JobStateStore()
    scheduler = Scheduler(
        store,
        make_simulated_provider(args.rate_limit, args.failure, args.latency),
        settings=settings,
    )
    history = create_history_store(settings.history_dir)
    scheduler.on_complete(history.record_run)

    def show_progress(snapshot: list[Job]) -> None:
        done = sum(1 for j in snapshot if j.is_terminal)
        print(f"\r⏳ {done}/{len(snapshot)} done", end="", flush=True)

    store.subscribe(show_progress)

    try:
        summary = await scheduler.run(jobs, keys, args.workers, mode)
    except PreconditionError as e:
        print(f"❌ {e}")
        return 2

    print()
    print("=" * 60)
    print(f"✅ Completed: {summary.completed}")
    print(f"❌ Failed:    {summary.failed}")
    print(f"⏸️  Pending:   {summary.pending}")
    print(f"⏱️  Duration:  {summary.duration_seconds:.1f}s")
    print("=" * 60)

    for job in store.snapshot():
        if job.error:
            print(f"   {job.display_name()}: {job.error}")

    return 0 if summary.failed == 0 else 1


def serve(args) -> None:
    import uvicorn
    from stockbatch.main import create_app

    settings = get_settings()
    if args.keys:
        settings = settings.model_copy(update={"api_keys": args.keys})

    app = create_app(
        make_simulated_provider(args.rate_limit, args.failure, args.latency),
        settings=settings,
    )
    try:
        jobs, _ = build_jobs(args)
    except PreconditionError:
        jobs = []
    app.state.scheduler.store.add(jobs)
    uvicorn.run(app, host="0.0.0.0", port=args.port)


def main():
    parser = argparse.ArgumentParser(description="stockbatch queue runner")
    parser.add_argument("files", nargs="*", help="Media files for METADATA mode")
    parser.add_argument("--keys", nargs="+", help="API keys (defaults to STOCKBATCH_API_KEYS)")
    parser.add_argument("--workers", type=int, default=None, help="Worker count (1-10)")
    parser.add_argument("--prompts", help="Idea/niche for PROMPT mode")
    parser.add_argument("--description", default="", help="Extra description for prompts")
    parser.add_argument("--ideas", help="Idea category for IDEA mode")
    parser.add_argument("--topic", help="Topic for the custom idea category")
    parser.add_argument("--quantity", type=int, default=30, help="Slots to generate")
    parser.add_argument("--rate-limit", type=float, default=0.1, help="Simulated 429 rate")
    parser.add_argument("--failure", type=float, default=0.02, help="Simulated permanent failure rate")
    parser.add_argument("--latency", type=float, default=0.5, help="Simulated call latency (s)")
    parser.add_argument("--serve", action="store_true", help="Serve the HTTP API instead")
    parser.add_argument("--port", type=int, default=3000)
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)
    print_banner()

    if args.serve:
        serve(args)
        return

    sys.exit(asyncio.run(run_batch(args)))


if __name__ == "__main__":
    main()
