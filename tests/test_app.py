"""Tests for the netpulse application."""

import logging

import pytest

from netpulse.app import (
    InterfacePanel,
    NetpulseApp,
    ProxyBadge,
    format_proxy,
    format_rate,
    setup_logging,
)
from netpulse.models import NetworkStatus, ProxyStatus, ProxyType
from netpulse.monitor import StatusSnapshot


def test_format_rate_kilobytes():
    """Test format_rate switches to KB/s below one MB/s."""
    assert "KB/s" in format_rate(0.5)
    assert "512.0" in format_rate(0.5)


def test_format_rate_megabytes():
    """Test format_rate with MB/s values."""
    result = format_rate(12.345)
    assert "MB/s" in result
    assert "12.35" in result


def test_format_proxy_disabled():
    """Test the disabled proxy label."""
    assert "off" in format_proxy(ProxyStatus.disabled())


def test_format_proxy_enabled():
    """Test the enabled proxy label shows type and host."""
    text = format_proxy(ProxyStatus(enabled=True, type=ProxyType.SOCKS, host="127.0.0.1:7890"))
    assert "SOCKS" in text
    assert "127.0.0.1:7890" in text


def test_setup_logging_to_file(tmp_path, monkeypatch):
    """Test NETPULSE_LOG_FILE routes log records to a file."""
    log_file = tmp_path / "netpulse.log"
    monkeypatch.setenv("NETPULSE_LOG_FILE", str(log_file))
    monkeypatch.setenv("NETPULSE_LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []

    try:
        setup_logging()
        logging.getLogger("netpulse.test").debug("hello from test")
        for handler in root.handlers:
            handler.flush()
        assert "hello from test" in log_file.read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)


@pytest.mark.asyncio
async def test_app_creation():
    """Test NetpulseApp can be instantiated."""
    app = NetpulseApp()
    assert app.title == "netpulse"
    assert app.sub_title == "Network Status"
    assert app._monitor is not None
    assert app._update_queue is not None


@pytest.mark.asyncio
async def test_app_compose():
    """Test NetpulseApp composes correctly."""
    app = NetpulseApp()
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#proxy-badge") is not None
        assert pilot.app.query_one("#interface-table") is not None
        assert pilot.app.query_one("#rx-trend") is not None
        assert pilot.app.query_one("#tx-trend") is not None


@pytest.mark.asyncio
async def test_app_quit_binding():
    """Test that 'q' binding triggers quit."""
    app = NetpulseApp()
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert not app._monitor.is_running


@pytest.mark.asyncio
async def test_app_proxy_binding(monkeypatch):
    """Test that 'p' requests a proxy refresh."""
    app = NetpulseApp()
    requests = []
    monkeypatch.setattr(app._monitor, "request_proxy_refresh", lambda: requests.append(1))
    async with app.run_test() as pilot:
        await pilot.press("p")
        await pilot.pause()
        assert requests == [1]


@pytest.mark.asyncio
async def test_update_status():
    """Test a status snapshot updates every widget."""
    app = NetpulseApp()
    async with app.run_test() as pilot:
        snapshot = StatusSnapshot(
            networks=[
                NetworkStatus(name="en0", rx_rate_mbs=3.0, tx_rate_mbs=1.0, ip="192.168.1.2"),
                NetworkStatus(name="en1", rx_rate_mbs=0.1, tx_rate_mbs=0.0),
            ],
            proxy=ProxyStatus(enabled=True, type=ProxyType.PAC, host="127.0.0.1:6152"),
            rx_history=[1.0, 3.1],
            tx_history=[0.5, 1.0],
        )

        app.update_status(snapshot)

        panel = pilot.app.query_one(InterfacePanel)
        assert panel.interface_names == ["en0", "en1"]
        assert pilot.app.query_one(ProxyBadge).proxy.type is ProxyType.PAC
        assert list(pilot.app.query_one("#rx-trend").data) == [1.0, 3.1]


@pytest.mark.asyncio
async def test_update_status_unavailable():
    """Test an unavailable sample clears the interface list."""
    app = NetpulseApp()
    async with app.run_test() as pilot:
        app.update_status(StatusSnapshot(networks=[], proxy=ProxyStatus.disabled(), available=False))

        panel = pilot.app.query_one(InterfacePanel)
        assert panel.interface_names == []


@pytest.mark.asyncio
async def test_app_receives_updates_from_monitor():
    """Test that app receives updates from the network monitor."""
    app = NetpulseApp(poll_rate=0.2)
    async with app.run_test() as pilot:
        await pilot.pause(1.5)

        assert app._monitor.is_running
        badge = pilot.app.query_one(ProxyBadge)
        assert isinstance(badge.proxy, ProxyStatus)
