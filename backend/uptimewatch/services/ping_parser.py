"""Ping output parsing - latency extraction and reply detection.

Handles the output of iputils (Linux), BSD/macOS and Windows ping, including
common localized labels (Spanish, German, French).
"""
import re
from typing import Optional

from ..utils.numbers import round_half_up

_NUMBER = r"([0-9]+(?:[.,][0-9]+)?)"

# Aggregate summary lines, average is taken. Examples:
#   rtt min/avg/max/mdev = 0.040/0.045/0.050/0.004 ms
#   round-trip min/avg/max/stddev = 14.1/14.3/14.6/0.2 ms
#   Minimum = 12ms, Maximum = 14ms, Average = 13ms
SUMMARY_PATTERNS = (
    re.compile(r"(?:rtt|round-trip)\s[^=]*=\s*" + _NUMBER + r"/" + _NUMBER + r"/", re.IGNORECASE),
    re.compile(r"(?:average|media|moyenne|mittelwert)\s*=\s*" + _NUMBER + r"\s*ms", re.IGNORECASE),
)

# Per-packet lines. Examples:
#   64 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=14.2 ms
#   64 bytes desde 8.8.8.8: icmp_seq=1 ttl=117 tiempo=14,2 ms
#   Reply from 8.8.8.8: bytes=32 time<1ms TTL=117
#   Respuesta desde 8.8.8.8: bytes=32 tiempo<1m TTL=117
TIME_PATTERN = re.compile(
    r"(?:time|tiempo|zeit|temps)\s*[=<:]\s*" + _NUMBER + r"\s*ms?", re.IGNORECASE
)

REPLY_MARKERS = (
    re.compile(r"bytes from", re.IGNORECASE),
    re.compile(r"icmp_seq="),
    re.compile(r"ttl=", re.IGNORECASE),
    re.compile(r"tiempo=", re.IGNORECASE),
    re.compile(r"reply from|respuesta desde", re.IGNORECASE),
)

# Lines that carry a marker but report a failed probe, e.g.
#   From 10.0.0.1 icmp_seq=1 Destination Host Unreachable
#   Reply from 10.0.0.1: Destination host unreachable.
FAILURE_LINE = re.compile(
    r"unreachable|inaccesible|inalcanzable|nicht erreichbar|injoignable|exceeded|expired",
    re.IGNORECASE,
)


def parse_latency(raw_text: Optional[str]) -> Optional[float]:
    """Extract round-trip latency in ms from ping output.

    Tries the summary line first, then a per-packet time field.
    Returns the value rounded to 2 decimals, or None if nothing matches.
    """
    if not raw_text:
        return None

    for pattern in SUMMARY_PATTERNS:
        match = pattern.search(raw_text)
        if match:
            # rtt/round-trip lines capture min then avg
            value = match.group(match.lastindex)
            latency = round_half_up(value)
            if latency is not None:
                return latency

    match = TIME_PATTERN.search(raw_text)
    if match:
        return round_half_up(match.group(1))

    return None


def has_reply_markers(raw_text: Optional[str]) -> bool:
    """True if the output shows a reply was received.

    Fallback for platforms and locales where the exit status of ping is
    unreliable.
    """
    if not raw_text:
        return False
    for line in raw_text.splitlines():
        if FAILURE_LINE.search(line):
            continue
        if any(marker.search(line) for marker in REPLY_MARKERS):
            return True
    return False
