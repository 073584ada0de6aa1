"""netpulse - Textual network status widget."""

import logging
import os
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Sparkline, Static

from netpulse.models import NetworkStatus, ProxyStatus
from netpulse.monitor import NetworkMonitor, StatusSnapshot

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """
    Configure logging from NETPULSE_LOG_FILE and NETPULSE_LOG_LEVEL.

    Without a log file nothing is written, the terminal belongs to the UI.
    """
    log_file = os.environ.get("NETPULSE_LOG_FILE")
    if not log_file:
        logging.getLogger("netpulse").addHandler(logging.NullHandler())
        return

    level = os.environ.get("NETPULSE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        filename=log_file,
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def format_rate(mbs: float) -> str:
    """Format a MB/s rate as a short human-readable string."""
    if mbs < 1:
        return f"{mbs * 1024:6.1f} KB/s"
    return f"{mbs:6.2f} MB/s"


def format_proxy(proxy: ProxyStatus) -> str:
    """One-line description of the proxy state."""
    if not proxy.enabled:
        return "Proxy: [dim]off[/dim]"
    return f"Proxy: [green]{proxy.type.value}[/green] {proxy.host}"


class ProxyBadge(Static):
    """Single-line proxy indicator."""

    DEFAULT_CSS = """
    ProxyBadge {
        height: 1;
        padding: 0 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(format_proxy(ProxyStatus.disabled()), *args, **kwargs)
        self._proxy = ProxyStatus.disabled()

    @property
    def proxy(self) -> ProxyStatus:
        return self._proxy

    def update_proxy(self, proxy: ProxyStatus) -> None:
        """Show a new proxy status."""
        self._proxy = proxy
        self.update(format_proxy(proxy))


class InterfacePanel(Container):
    """Table of the busiest interfaces."""

    DEFAULT_CSS = """
    InterfacePanel {
        height: auto;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize InterfacePanel."""
        super().__init__(*args, **kwargs)
        self._names: list[str] = []

    @property
    def interface_names(self) -> list[str]:
        """Interfaces currently shown, busiest first."""
        return list(self._names)

    def compose(self) -> ComposeResult:
        """Compose the interface table."""
        yield DataTable(id="interface-table", show_cursor=False)

    def on_mount(self) -> None:
        """Add the table columns when mounted."""
        table = self.query_one("#interface-table", DataTable)
        table.add_column("Interface", key="name", width=12)
        table.add_column("IP", key="ip", width=16)
        table.add_column("↓", key="rx", width=12)
        table.add_column("↑", key="tx", width=12)

    def update_networks(self, networks: list[NetworkStatus], available: bool = True) -> None:
        """
        Replace the table contents.

        The list holds at most a handful of rows, so it is rebuilt every tick
        to keep the ranking order.
        """
        table = self.query_one("#interface-table", DataTable)
        table.clear()
        self._names = [n.name for n in networks]
        if not available:
            table.add_row("n/a", "", "", "", key="unavailable")
            return
        for status in networks:
            table.add_row(
                status.name,
                status.ip or "-",
                format_rate(status.rx_rate_mbs),
                format_rate(status.tx_rate_mbs),
                key=status.name,
            )


class NetpulseApp(App):
    """Main netpulse application."""

    TITLE = "netpulse"
    SUB_TITLE = "Network Status"

    CSS = """
    Screen {
        layout: vertical;
    }

    Horizontal {
        height: 3;
    }

    Sparkline {
        width: 1fr;
        margin: 0 1;
    }

    #rx-trend > .sparkline--max-color {
        color: $success;
    }

    #tx-trend > .sparkline--max-color {
        color: $warning;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("p", "refresh_proxy", "Proxy"),
    ]

    def __init__(self, poll_rate: float = 1.0, proxy_every: int = 5) -> None:
        """Initialize the NetpulseApp."""
        super().__init__()
        self._update_queue: Queue[StatusSnapshot] = Queue()
        self._monitor = NetworkMonitor(self._update_queue, poll_rate=poll_rate, proxy_every=proxy_every)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield ProxyBadge(id="proxy-badge")
        yield InterfacePanel()
        yield Horizontal(
            Sparkline([], summary_function=max, id="rx-trend"),
            Sparkline([], summary_function=max, id="tx-trend"),
        )
        yield Footer()

    def on_mount(self) -> None:
        """Start the network monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the newest snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self.update_status(snapshot)

    def update_status(self, snapshot: StatusSnapshot) -> None:
        """Update the UI with a new status snapshot."""
        try:
            self.query_one(ProxyBadge).update_proxy(snapshot.proxy)
            self.query_one(InterfacePanel).update_networks(snapshot.networks, snapshot.available)
            self.query_one("#rx-trend", Sparkline).data = snapshot.rx_history
            self.query_one("#tx-trend", Sparkline).data = snapshot.tx_history
        except Exception:
            # A display hiccup must never take the widget down
            logger.debug("UI update failed", exc_info=True)

    def action_refresh_proxy(self) -> None:
        """Re-detect the proxy on the next tick."""
        self._monitor.request_proxy_refresh()
        self.notify("Refreshing proxy status")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for netpulse."""
    setup_logging()
    app = NetpulseApp()
    app.run()


if __name__ == "__main__":
    main()
