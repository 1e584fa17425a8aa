"""History store - bounded observation history and rolling uptime.

Each monitor keeps its observations oldest first. Appends evict the oldest
entries once the cap is reached, and the uptime aggregates are recomputed
from whatever the history holds after the append.
"""
from typing import Iterable, Optional

from ..schemas.monitor import Monitor, Observation, STATUS_UP
from ..utils.numbers import round_half_up

# 7 days at 1-minute granularity
MAX_HISTORY_ENTRIES = 7 * 24 * 60

DAY_MS = 24 * 60 * 60 * 1000
WINDOW_24H_MS = DAY_MS
WINDOW_30D_MS = 30 * DAY_MS


def append_observation(
    monitor: Monitor,
    observation: Observation,
    limit: int = MAX_HISTORY_ENTRIES,
) -> None:
    """Append an observation, dropping the oldest entries beyond ``limit``."""
    history = list(monitor.history)
    history.append(observation)
    if len(history) > limit:
        history = history[len(history) - limit:]
    monitor.history = history


def uptime_since(history: Iterable[Observation], since_ms: int) -> Optional[float]:
    """Percentage of up observations with ``t >= since_ms``.

    Returns None when no observation falls in the window.
    """
    total = 0
    up = 0
    for observation in history:
        if observation.t >= since_ms:
            total += 1
            if observation.status == STATUS_UP:
                up += 1
    if not total:
        return None
    return round_half_up(up / total * 100)


def refresh_uptime(monitor: Monitor, now_ms: int) -> None:
    """Recompute the 24h and 30d uptime aggregates of a monitor."""
    monitor.uptime24 = uptime_since(monitor.history, now_ms - WINDOW_24H_MS)
    monitor.uptime30 = uptime_since(monitor.history, now_ms - WINDOW_30D_MS)
