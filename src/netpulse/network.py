"""Network throughput sampling for netpulse."""

import logging
import socket
import time
from collections import deque
from collections.abc import Iterable, Mapping
from typing import Protocol

import psutil

from netpulse.models import InterfaceCounters, NetworkStatus, Snapshot

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024

# Loopback and interfaces the OS creates for its own plumbing: AirDrop mesh,
# user-space tunnels, low-latency WLAN, bridges, gif/stf tunnels, USB host
# controllers, Apple platform network interfaces and access points.
NOISE_PREFIXES: tuple[str, ...] = (
    "lo",
    "awdl",
    "utun",
    "llw",
    "bridge",
    "gif",
    "stf",
    "xhc",
    "anpi",
    "ap",
)


class SnapshotError(RuntimeError):
    """Raised when interface counters cannot be read."""


class CounterSource(Protocol):
    """Anything that can produce interface counters and addresses."""

    def read_counters(self) -> dict[str, InterfaceCounters]: ...

    def interface_ips(self) -> dict[str, str]: ...


def is_noise(name: str, prefixes: Iterable[str] = NOISE_PREFIXES) -> bool:
    """Check whether an interface should be hidden from throughput output."""
    lower = name.lower()
    return any(lower.startswith(prefix) for prefix in prefixes)


def read_counters() -> dict[str, InterfaceCounters]:
    """
    Read cumulative per-interface byte counters.

    Raises:
        SnapshotError: psutil could not read the counters.
    """
    try:
        stats = psutil.net_io_counters(pernic=True)
    except (OSError, RuntimeError) as exc:
        raise SnapshotError(f"cannot read interface counters: {exc}") from exc

    return {
        name: InterfaceCounters(name=name, bytes_recv=s.bytes_recv, bytes_sent=s.bytes_sent)
        for name, s in stats.items()
    }


def interface_ips() -> dict[str, str]:
    """Map each interface to its first non-loopback IPv4 address."""
    result: dict[str, str] = {}
    try:
        addrs = psutil.net_if_addrs()
    except (OSError, RuntimeError):
        logger.debug("Interface address lookup failed", exc_info=True)
        return result

    for name, addr_list in addrs.items():
        for addr in addr_list:
            if addr.family == socket.AF_INET and addr.address and not addr.address.startswith("127."):
                result[name] = addr.address.split("/")[0]
                break
    return result


class _PsutilSource:
    """Counter source backed by psutil."""

    def read_counters(self) -> dict[str, InterfaceCounters]:
        return read_counters()

    def interface_ips(self) -> dict[str, str]:
        return interface_ips()


class TrendBuffer:
    """Fixed-size history of aggregate rates, oldest sample dropped first."""

    def __init__(self, capacity: int = 60) -> None:
        self._samples: deque[float] = deque(maxlen=max(1, capacity))

    @property
    def capacity(self) -> int:
        """Maximum number of samples kept."""
        return self._samples.maxlen or 1

    def add(self, value: float) -> None:
        """Append a sample, overwriting the oldest one when full."""
        self._samples.append(value)

    def values(self) -> list[float]:
        """Samples from oldest to newest."""
        return list(self._samples)

    def latest(self) -> float:
        """Most recent sample, 0.0 when empty."""
        return self._samples[-1] if self._samples else 0.0

    def __len__(self) -> int:
        return len(self._samples)


class RateEngine:
    """
    Turns successive counter snapshots into per-interface throughput.

    Keeps exactly one previous snapshot. The first call only records a
    baseline; every later call reports the busiest interfaces since the
    previous call and feeds their summed rates into the trend buffers.
    """

    def __init__(
        self,
        source: CounterSource | None = None,
        noise_prefixes: Iterable[str] = NOISE_PREFIXES,
        top_n: int = 3,
        history: int = 60,
    ) -> None:
        """
        Initialize the RateEngine.

        Args:
            source: Counter source; psutil when omitted.
            noise_prefixes: Interface name prefixes never reported.
            top_n: Maximum number of interfaces returned per tick.
            history: Capacity of the receive/transmit trend buffers.
        """
        self._source = source if source is not None else _PsutilSource()
        self._noise_prefixes = tuple(noise_prefixes)
        self._top_n = max(1, top_n)
        self._previous: Snapshot | None = None
        self.rx_history = TrendBuffer(history)
        self.tx_history = TrendBuffer(history)

    @property
    def has_baseline(self) -> bool:
        """Whether a previous snapshot is stored."""
        return self._previous is not None

    def reset(self) -> None:
        """Forget the baseline; the next update is a warm-up tick again."""
        self._previous = None

    def collect(self, now: float | None = None) -> list[NetworkStatus]:
        """
        Read a fresh snapshot from the source and compute rates.

        Raises:
            SnapshotError: The counter source failed.
        """
        if now is None:
            now = time.monotonic()
        counters = self._source.read_counters()
        return self.update(now, counters, self._source.interface_ips())

    def update(
        self,
        now: float,
        counters: Mapping[str, InterfaceCounters],
        addresses: Mapping[str, str] | None = None,
    ) -> list[NetworkStatus]:
        """Compute throughput against the stored snapshot, then replace it."""
        previous = self._previous
        self._previous = Snapshot(taken_at=now, counters=dict(counters))
        if previous is None:
            return []

        elapsed = now - previous.taken_at
        if elapsed <= 0:
            # Clock went backwards or did not move
            elapsed = 1.0

        addresses = addresses or {}
        result: list[NetworkStatus] = []
        for name, cur in counters.items():
            if is_noise(name, self._noise_prefixes):
                continue
            prev = previous.counters.get(name)
            if prev is None:
                continue

            # Counter resets show up as a single zero-rate tick
            rx = max(0.0, (cur.bytes_recv - prev.bytes_recv) / BYTES_PER_MB / elapsed)
            tx = max(0.0, (cur.bytes_sent - prev.bytes_sent) / BYTES_PER_MB / elapsed)
            result.append(NetworkStatus(name=name, rx_rate_mbs=rx, tx_rate_mbs=tx, ip=addresses.get(name)))

        result.sort(key=lambda s: s.total_rate_mbs, reverse=True)
        result = result[: self._top_n]

        self.rx_history.add(sum(s.rx_rate_mbs for s in result))
        self.tx_history.add(sum(s.tx_rate_mbs for s in result))
        return result
