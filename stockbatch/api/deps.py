"""FastAPI dependencies for the stockbatch API."""

from fastapi import Request

from stockbatch.config import Settings
from stockbatch.services.scheduler import Scheduler


def get_settings_dep(request: Request) -> Settings:
    """Dependency for application settings."""
    return request.app.state.settings


def get_scheduler_dep(request: Request) -> Scheduler:
    """Dependency for the run controller owned by the app."""
    return request.app.state.scheduler
