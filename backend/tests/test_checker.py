"""Tests for the HTTP and ping probe executors."""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from uptimewatch.schemas.monitor import Monitor
from uptimewatch.services.checker import (
    CheckerService,
    HttpProbeExecutor,
    PingProbeExecutor,
    ProbeResult,
    normalize_url,
    ping_command,
    probe_http,
    probe_ping,
)

LINUX_OK = (
    "64 bytes from 10.0.0.1: icmp_seq=1 ttl=64 time=0.045 ms\n"
    "rtt min/avg/max/mdev = 0.045/0.045/0.045/0.000 ms\n"
)


def _transport(status_code=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code)
    return httpx.MockTransport(handler)


def _fake_process(stdout=b"", stderr=b"", returncode=0):
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.returncode = returncode
    proc.wait = AsyncMock(return_value=returncode)
    return proc


class TestHttpProbe:
    def test_normalize_url(self):
        assert normalize_url("example.com") == "http://example.com"
        assert normalize_url("https://example.com/x") == "https://example.com/x"
        assert normalize_url("HTTP://example.com") == "HTTP://example.com"

    @pytest.mark.asyncio
    async def test_ok_response_prefixes_scheme(self):
        seen = []
        result = await probe_http("example.com", 1000, transport=_transport(200, seen))
        assert result.ok is True
        assert result.code == 200
        assert seen[0].url.scheme == "http"
        assert seen[0].url.host == "example.com"
        assert seen[0].method == "GET"

    @pytest.mark.asyncio
    async def test_redirect_counts_as_up(self):
        result = await probe_http("http://example.com", 1000, transport=_transport(302))
        assert result.ok is True
        assert result.code == 302

    @pytest.mark.asyncio
    async def test_server_error_is_down_with_code(self):
        result = await probe_http("http://example.com", 1000, transport=_transport(503))
        assert result.ok is False
        assert result.code == 503

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await probe_http("example.com", 1000, transport=httpx.MockTransport(handler))
        assert result == ProbeResult(ok=False, code=None, stderr=result.stderr)
        assert "Connection error" in result.stderr

    @pytest.mark.asyncio
    async def test_hard_timeout(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        result = await probe_http("example.com", 50, transport=httpx.MockTransport(handler))
        assert result.ok is False
        assert result.code is None
        assert result.stderr == "Request timeout"

    @pytest.mark.asyncio
    async def test_malformed_target_never_raises(self):
        result = await probe_http("http://example.com:notaport", 1000, transport=_transport(200))
        assert result.ok is False
        assert result.code is None


class TestPingProbe:
    def test_platform_flags(self):
        assert ping_command("h", "linux") == ["ping", "-c", "1", "-W", "1", "h"]
        assert ping_command("h", "darwin") == ["ping", "-c", "1", "-W", "1000", "h"]
        assert ping_command("h", "win32") == ["ping", "-n", "1", "-w", "1000", "h"]

    @pytest.mark.asyncio
    async def test_successful_ping(self):
        proc = _fake_process(LINUX_OK.encode())
        with patch("uptimewatch.services.checker.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as spawn:
            result = await probe_ping("10.0.0.1")
        assert result.ok is True
        assert result.ping == 0.05
        assert result.stdout == LINUX_OK
        assert spawn.call_args.args[-1] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_reply_markers_override_nonzero_exit(self):
        proc = _fake_process(LINUX_OK.encode(), returncode=1)
        with patch("uptimewatch.services.checker.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            result = await probe_ping("10.0.0.1")
        assert result.ok is True

    @pytest.mark.asyncio
    async def test_unreachable_host(self):
        proc = _fake_process(b"1 packets transmitted, 0 received, 100% packet loss, time 0ms\n", returncode=1)
        with patch("uptimewatch.services.checker.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            result = await probe_ping("192.0.2.1")
        assert result.ok is False
        assert result.ping is None

    @pytest.mark.asyncio
    async def test_destination_unreachable_reply_stays_down(self):
        output = b"From 10.0.0.1 icmp_seq=1 Destination Host Unreachable\n"
        proc = _fake_process(output, returncode=1)
        with patch("uptimewatch.services.checker.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            result = await probe_ping("10.0.0.9")
        assert result.ok is False

    @pytest.mark.asyncio
    async def test_latency_parsed_even_when_not_ok(self):
        proc = _fake_process(b"rtt min/avg/max/mdev = 1.0/2.0/3.0/0.1 ms\n", returncode=1)
        with patch("uptimewatch.services.checker.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            result = await probe_ping("10.0.0.1")
        assert result.ok is False
        assert result.ping == 2.0

    @pytest.mark.asyncio
    async def test_hard_timeout_kills_process(self):
        async def hang():
            await asyncio.sleep(10)

        proc = _fake_process()
        proc.communicate = hang
        proc.kill = MagicMock()
        with patch("uptimewatch.services.checker.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            result = await probe_ping("10.0.0.1", timeout_seconds=0.05)
        assert result == ProbeResult(ok=False, ping=None, stderr="timeout")
        proc.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_spawn_error(self):
        spawn = AsyncMock(side_effect=FileNotFoundError("[Errno 2] No such file or directory: 'ping'"))
        with patch("uptimewatch.services.checker.asyncio.create_subprocess_exec", spawn):
            result = await probe_ping("10.0.0.1")
        assert result.ok is False
        assert result.ping is None
        assert "No such file" in result.stderr

    @pytest.mark.asyncio
    async def test_option_like_target_is_rejected(self):
        spawn = AsyncMock()
        with patch("uptimewatch.services.checker.asyncio.create_subprocess_exec", spawn):
            result = await probe_ping("-f")
        assert result.ok is False
        spawn.assert_not_called()


class TestExecutors:
    @pytest.mark.asyncio
    async def test_http_executor_observation(self):
        executor = HttpProbeExecutor(timeout_ms=1000, transport=_transport(200))
        observation = await executor.execute(Monitor(id="m", url="example.com"), 123)
        assert observation.t == 123
        assert observation.status == "up"
        assert observation.code == 200
        assert observation.err is None

    @pytest.mark.asyncio
    async def test_ping_executor_without_target(self):
        executor = PingProbeExecutor()
        assert await executor.execute(Monitor(id="m", type="ping", url=None), 123) is None
        assert await executor.execute(Monitor(id="m", type="ping", url="  "), 123) is None

    @pytest.mark.asyncio
    async def test_ping_executor_codes(self):
        executor = PingProbeExecutor()
        down = ProbeResult(ok=False, stderr="timeout")
        with patch("uptimewatch.services.checker.probe_ping", AsyncMock(return_value=down)):
            observation = await executor.execute(Monitor(id="m", type="ping", url="10.0.0.1"), 5)
        assert observation.status == "down"
        assert observation.code == 1
        assert observation.ping is None
        assert observation.err == "timeout"

    def test_registry_dispatch(self):
        checker = CheckerService()
        assert isinstance(checker.executor_for("http"), HttpProbeExecutor)
        assert isinstance(checker.executor_for("ping"), PingProbeExecutor)
        assert checker.executor_for("ftp") is None
        assert checker.executor_for(None) is None
