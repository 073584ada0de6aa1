"""Data models for netpulse."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(slots=True, frozen=True)
class InterfaceCounters:
    """Cumulative byte counters of one network interface."""

    name: str
    bytes_recv: int
    bytes_sent: int


@dataclass(slots=True)
class Snapshot:
    """Point-in-time capture of per-interface counters."""

    taken_at: float  # Seconds, monotonic clock
    counters: dict[str, InterfaceCounters] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class NetworkStatus:
    """Throughput of one interface over the last sampling interval."""

    name: str
    rx_rate_mbs: float  # MB/s, never negative
    tx_rate_mbs: float
    ip: str | None = None

    @property
    def total_rate_mbs(self) -> float:
        """Combined receive and transmit rate."""
        return self.rx_rate_mbs + self.tx_rate_mbs


class ProxyType(Enum):
    """Kinds of outbound proxy netpulse can report."""

    HTTP = "HTTP"
    HTTPS = "HTTPS"
    SOCKS = "SOCKS"
    PAC = "PAC"
    WPAD = "WPAD"
    TUN = "TUN"
    NONE = ""


@dataclass(slots=True, frozen=True)
class ProxyStatus:
    """Result of one proxy detection pass."""

    enabled: bool
    type: ProxyType = ProxyType.NONE
    host: str = ""

    @classmethod
    def disabled(cls) -> "ProxyStatus":
        """Status reported when no detector found a proxy."""
        return cls(enabled=False)
