"""FastAPI dependencies resolving the services created at startup."""
from fastapi import Request

from .services.publisher import UpdatePublisher
from .services.scheduler import SchedulerService
from .services.state_store import StateStore


def get_store(request: Request) -> StateStore:
    return request.app.state.store


def get_publisher(request: Request) -> UpdatePublisher:
    return request.app.state.publisher


def get_scheduler(request: Request) -> SchedulerService:
    return request.app.state.scheduler
