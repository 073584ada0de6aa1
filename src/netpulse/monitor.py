"""Background sampling engine for netpulse."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from queue import Queue

from netpulse.models import NetworkStatus, ProxyStatus
from netpulse.network import RateEngine, SnapshotError
from netpulse.proxy import detect_proxy

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StatusSnapshot:
    """Everything the status widget shows for one tick."""

    networks: list[NetworkStatus]
    proxy: ProxyStatus
    rx_history: list[float] = field(default_factory=list)
    tx_history: list[float] = field(default_factory=list)
    available: bool = True  # False when counters could not be read


class NetworkMonitor:
    """
    Network monitor that samples throughput and proxy state.

    Runs in a separate daemon thread and pushes updates to a thread-safe Queue.
    The rate engine is only ever touched by that thread. Proxy detection may
    shell out, so it runs every ``proxy_every`` ticks instead of every tick.
    """

    def __init__(
        self,
        update_queue: Queue[StatusSnapshot],
        poll_rate: float = 1.0,
        proxy_every: int = 5,
        engine: RateEngine | None = None,
        proxy_detector: Callable[[], ProxyStatus] = detect_proxy,
    ) -> None:
        """
        Initialize the NetworkMonitor.

        Args:
            update_queue: Thread-safe queue to push updates to.
            poll_rate: How often to sample counters (in seconds). Default 1.0s.
            proxy_every: Run proxy detection once per this many ticks.
            engine: Rate engine to drive. A psutil-backed one by default.
            proxy_detector: Callable returning the current ProxyStatus.
        """
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._proxy_every = max(1, proxy_every)
        self._engine = engine if engine is not None else RateEngine()
        self._detect_proxy = proxy_detector
        self._proxy = ProxyStatus.disabled()
        self._ticks = 0
        self._proxy_requested = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def proxy_every(self) -> int:
        """Number of ticks between proxy detections."""
        return self._proxy_every

    @proxy_every.setter
    def proxy_every(self, value: int) -> None:
        self._proxy_every = max(1, value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def request_proxy_refresh(self) -> None:
        """Re-run proxy detection on the next tick."""
        self._proxy_requested.set()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="NetworkMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.tick())
            except Exception:
                logger.exception("Sampling tick failed")

            self._stop_event.wait(timeout=self._poll_rate)

    def tick(self) -> StatusSnapshot:
        """Sample once and return the resulting snapshot."""
        if self._ticks % self._proxy_every == 0 or self._proxy_requested.is_set():
            self._proxy_requested.clear()
            self._proxy = self._detect_proxy()
        self._ticks += 1

        try:
            networks = self._engine.collect()
            available = True
        except SnapshotError as exc:
            # Metrics unavailable this tick, the next tick retries
            logger.debug("Skipping network sample: %s", exc)
            networks = []
            available = False

        return StatusSnapshot(
            networks=networks,
            proxy=self._proxy,
            rx_history=self._engine.rx_history.values(),
            tx_history=self._engine.tx_history.values(),
            available=available,
        )
