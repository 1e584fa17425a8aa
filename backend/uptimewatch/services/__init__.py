"""Services for probing, scheduling and publishing monitor state."""
from .checker import CheckerService, HttpProbeExecutor, PingProbeExecutor
from .publisher import UpdatePublisher
from .scheduler import SchedulerService
from .state_store import StateStore, MemoryStateStore, DatabaseStateStore

__all__ = [
    "CheckerService",
    "HttpProbeExecutor",
    "PingProbeExecutor",
    "UpdatePublisher",
    "SchedulerService",
    "StateStore",
    "MemoryStateStore",
    "DatabaseStateStore",
]
