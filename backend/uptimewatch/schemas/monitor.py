"""Monitor and observation schemas.

These models are both the in-process representation used by the check
pipeline and the wire/storage contract: ``to_dict()`` produces the camelCase
shape served by the API and pushed to subscribers.
"""
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field

STATUS_UP = "up"
STATUS_DOWN = "down"
STATUS_UNKNOWN = "unknown"

MONITOR_TYPES = ("http", "ping")


class Observation(BaseModel):
    """One probe result. Never mutated once appended to a history."""
    t: int  # ms since epoch
    status: str  # up, down
    code: Optional[int] = None
    ping: Optional[float] = None
    out: Optional[str] = None
    err: Optional[str] = None

    class Config:
        frozen = True

    def to_dict(self) -> dict:
        data = {"t": self.t, "status": self.status, "code": self.code}
        # Diagnostic fields only appear when captured
        for key in ("ping", "out", "err"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


class Monitor(BaseModel):
    """A tracked target and its health state."""
    id: str
    name: str = "unnamed"
    url: Optional[str] = Field(None, validation_alias=AliasChoices("url", "target"))
    type: str = "http"  # http, ping
    interval: Optional[int] = None  # seconds

    last_status: Optional[str] = Field(None, alias="lastStatus")
    last_checked: Optional[int] = Field(None, alias="lastChecked")  # ms since epoch
    last_code: Optional[int] = Field(None, alias="lastCode")
    last_ping: Optional[float] = Field(None, alias="lastPing")
    uptime24: Optional[float] = None
    uptime30: Optional[float] = None

    history: List[Observation] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        extra = "ignore"

    def interval_ms(self, default_seconds: int = 60) -> int:
        """Check interval in milliseconds, falling back when unset."""
        seconds = self.interval if self.interval and self.interval > 0 else default_seconds
        return seconds * 1000

    def to_dict(self) -> dict:
        data = self.model_dump(by_alias=True, exclude={"history"})
        data["history"] = [obs.to_dict() for obs in self.history]
        return data


class MonitorCreate(BaseModel):
    """Schema for creating a new monitor."""
    id: Optional[str] = Field(None, min_length=1, max_length=64)
    name: str = Field("unnamed", min_length=1, max_length=255)
    url: Optional[str] = Field(None, validation_alias=AliasChoices("url", "target"))
    type: str = "http"
    interval: int = Field(default=60, ge=1, le=86400)


class RemoveResponse(BaseModel):
    """Response after deleting a monitor."""
    removed: int
