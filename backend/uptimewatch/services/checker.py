"""Checker service - performs HTTP and ping reachability probes."""
import asyncio
import logging
import re
import sys
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import httpx

from ..config import settings
from ..schemas.monitor import Monitor, Observation, STATUS_UP, STATUS_DOWN
from .ping_parser import parse_latency, has_reply_markers

logger = logging.getLogger(__name__)

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


@dataclass
class ProbeResult:
    """Normalized outcome of a single probe."""
    ok: bool
    code: Optional[int] = None
    ping: Optional[float] = None  # ms
    stdout: str = ""
    stderr: str = ""


def normalize_url(url: str) -> str:
    """Prefix http:// when the target has no scheme."""
    url = (url or "").strip()
    if not _SCHEME.match(url):
        url = f"http://{url}"
    return url


async def probe_http(
    url: str,
    timeout_ms: int = 10000,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProbeResult:
    """Issue one GET and report whether the status code is 2xx/3xx.

    Never raises: network errors, bad targets and timeouts all come back as
    ``ok=False, code=None`` with the reason in ``stderr``.
    """
    target = normalize_url(url)
    timeout = timeout_ms / 1000

    try:
        # Disable SSL verification to handle self-signed certificates
        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=False, verify=False, transport=transport
        ) as client:
            # httpx timeouts are per phase; bound the whole request as well
            response = await asyncio.wait_for(client.get(target), timeout=timeout)
    except (httpx.TimeoutException, asyncio.TimeoutError):
        return ProbeResult(ok=False, stderr="Request timeout")
    except httpx.ConnectError as e:
        return ProbeResult(ok=False, stderr=f"Connection error: {e}")
    except Exception as e:
        logger.debug(f"HTTP probe of {target} failed: {e!r}")
        return ProbeResult(ok=False, stderr=str(e) or type(e).__name__)

    return ProbeResult(ok=200 <= response.status_code < 400, code=response.status_code)


def ping_command(target: str, platform: str = sys.platform) -> List[str]:
    """Single-packet ping with a ~1 second reply timeout."""
    if platform.startswith("win"):
        return ["ping", "-n", "1", "-w", "1000", target]
    if platform == "darwin":
        return ["ping", "-c", "1", "-W", "1000", target]
    return ["ping", "-c", "1", "-W", "1", target]


async def probe_ping(target: str, timeout_seconds: float = 5.0) -> ProbeResult:
    """Ping a host once via the system ping command.

    The process is killed if it outlives ``timeout_seconds``, regardless of
    its own reply timeout. Latency is parsed even when the ping failed.
    """
    if target.startswith("-"):
        # Would be read as an option by ping
        return ProbeResult(ok=False, stderr=f"Invalid target: {target}")

    try:
        proc = await asyncio.create_subprocess_exec(
            *ping_command(target),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        # ping missing or not executable
        return ProbeResult(ok=False, stderr=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        return ProbeResult(ok=False, stderr="timeout")

    output = stdout.decode(errors="replace")
    errors = stderr.decode(errors="replace")
    ok = proc.returncode == 0 or has_reply_markers(output)

    return ProbeResult(ok=ok, ping=parse_latency(output), stdout=output, stderr=errors)


class ProbeExecutor:
    """Runs the probe for one monitor type and turns it into an observation."""

    monitor_type: str = ""

    async def execute(self, monitor: Monitor, now_ms: int) -> Optional[Observation]:
        """Probe the monitor's target.

        Returns None when the monitor is not configured well enough to probe.
        """
        raise NotImplementedError


class HttpProbeExecutor(ProbeExecutor):
    monitor_type = "http"

    def __init__(self, timeout_ms: int = 10000, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout_ms = timeout_ms
        self.transport = transport

    async def execute(self, monitor: Monitor, now_ms: int) -> Optional[Observation]:
        result = await probe_http(monitor.url or "", self.timeout_ms, transport=self.transport)
        return Observation(
            t=now_ms,
            status=STATUS_UP if result.ok else STATUS_DOWN,
            code=result.code,
            err=result.stderr or None,
        )


class PingProbeExecutor(ProbeExecutor):
    monitor_type = "ping"

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds

    async def execute(self, monitor: Monitor, now_ms: int) -> Optional[Observation]:
        target = (monitor.url or "").strip()
        if not target:
            return None

        result = await probe_ping(target, self.timeout_seconds)
        return Observation(
            t=now_ms,
            status=STATUS_UP if result.ok else STATUS_DOWN,
            code=0 if result.ok else 1,
            ping=result.ping,
            out=result.stdout or None,
            err=result.stderr or None,
        )


class CheckerService:
    """Selects the probe executor for a monitor type."""

    def __init__(self, executors: Optional[Iterable[ProbeExecutor]] = None):
        if executors is None:
            executors = [
                HttpProbeExecutor(timeout_ms=settings.http_timeout_ms),
                PingProbeExecutor(timeout_seconds=settings.ping_timeout_seconds),
            ]
        self.executors: Dict[str, ProbeExecutor] = {e.monitor_type: e for e in executors}

    def executor_for(self, monitor_type: Optional[str]) -> Optional[ProbeExecutor]:
        return self.executors.get(monitor_type or "")


# Global instance
checker_service = CheckerService()
