"""Pydantic schemas for monitors, observations and API payloads."""
from .monitor import (
    Monitor,
    MonitorCreate,
    Observation,
    RemoveResponse,
    STATUS_UP,
    STATUS_DOWN,
    STATUS_UNKNOWN,
    MONITOR_TYPES,
)

__all__ = [
    "Monitor",
    "MonitorCreate",
    "Observation",
    "RemoveResponse",
    "STATUS_UP",
    "STATUS_DOWN",
    "STATUS_UNKNOWN",
    "MONITOR_TYPES",
]
