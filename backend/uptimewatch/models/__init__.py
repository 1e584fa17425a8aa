"""Database models."""
from .monitor import MonitorRecord

__all__ = ["MonitorRecord"]
