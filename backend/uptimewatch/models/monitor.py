"""Monitor model - persisted monitor records."""
import json

from sqlalchemy import BigInteger, Column, Float, Integer, String, Text

from ..database import Base
from ..schemas.monitor import Monitor, Observation


class MonitorRecord(Base):
    """A monitored target with its health state and history."""

    __tablename__ = "monitors"

    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, default=0)  # order within the collection
    name = Column(String, nullable=False)
    url = Column(String, nullable=True)  # IP/hostname/URL
    type = Column(String, nullable=False)  # http, ping
    interval = Column(Integer, nullable=True)  # seconds

    last_status = Column(String, nullable=True)  # up, down, unknown
    last_checked = Column(BigInteger, nullable=True)  # ms since epoch
    last_code = Column(Integer, nullable=True)
    last_ping = Column(Float, nullable=True)
    uptime24 = Column(Float, nullable=True)
    uptime30 = Column(Float, nullable=True)

    history = Column(Text, nullable=False, default="[]")  # JSON list of observations

    @classmethod
    def from_monitor(cls, monitor: Monitor, position: int = 0) -> "MonitorRecord":
        return cls(
            id=monitor.id,
            position=position,
            name=monitor.name,
            url=monitor.url,
            type=monitor.type,
            interval=monitor.interval,
            last_status=monitor.last_status,
            last_checked=monitor.last_checked,
            last_code=monitor.last_code,
            last_ping=monitor.last_ping,
            uptime24=monitor.uptime24,
            uptime30=monitor.uptime30,
            history=json.dumps([obs.to_dict() for obs in monitor.history]),
        )

    def to_monitor(self) -> Monitor:
        history = [Observation.model_validate(item) for item in json.loads(self.history or "[]")]
        return Monitor(
            id=self.id,
            name=self.name,
            url=self.url,
            type=self.type,
            interval=self.interval,
            last_status=self.last_status,
            last_checked=self.last_checked,
            last_code=self.last_code,
            last_ping=self.last_ping,
            uptime24=self.uptime24,
            uptime30=self.uptime30,
            history=history,
        )
