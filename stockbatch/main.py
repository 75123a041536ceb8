"""FastAPI application wiring the job queue to its HTTP observers."""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockbatch.api.routes import router, stockbatch_exception_handler
from stockbatch.config import Settings, get_settings
from stockbatch.services.history import create_history_store
from stockbatch.services.job_store import JobStateStore
from stockbatch.services.scheduler import Generator, Scheduler
from stockbatch.utils.errors import StockBatchError

logger = logging.getLogger(__name__)


def create_app(
    generate: Generator,
    settings: Optional[Settings] = None,
    store: Optional[JobStateStore] = None,
) -> FastAPI:
    """
    Build the API around one scheduler.

    Args:
        generate: Async capability processing one job with one key
        settings: Application settings (defaults to environment)
        store: Job state store to expose (a fresh one by default)

    Returns:
        Configured FastAPI app; the scheduler is on ``app.state.scheduler``
    """
    settings = settings or get_settings()
    store = store if store is not None else JobStateStore()
    scheduler = Scheduler(store, generate, settings=settings)

    history = create_history_store(settings.history_dir)
    scheduler.on_complete(history.record_run)

    app = FastAPI(title="stockbatch API")
    app.state.settings = settings
    app.state.scheduler = scheduler
    app.state.history = history

    app.include_router(router)
    app.add_exception_handler(StockBatchError, stockbatch_exception_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.debug(f"API ready with {len(settings.api_keys)} keys for {settings.api_provider}")
    return app
