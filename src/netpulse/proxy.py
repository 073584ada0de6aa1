"""
Outbound proxy detection.

Detectors are tried in a fixed order and the first one that finds a proxy
wins: explicit environment variables, then the macOS system proxy settings,
then active tunnel interfaces left behind by VPN-style proxy clients.
"""

import logging
import os
import subprocess
import sys
from collections.abc import Callable, Mapping

from netpulse.models import InterfaceCounters, ProxyStatus, ProxyType
from netpulse.network import SnapshotError, read_counters
from netpulse.textparse import dict_flag, dict_value, host_of, join_host_port

logger = logging.getLogger(__name__)

# ALL_PROXY is checked last for tools that only export a single variable
ENV_KEYS: tuple[str, ...] = (
    "https_proxy",
    "HTTPS_PROXY",
    "http_proxy",
    "HTTP_PROXY",
    "all_proxy",
    "ALL_PROXY",
)

SCUTIL_COMMAND: tuple[str, ...] = ("scutil", "--proxy")
QUERY_TIMEOUT = 0.5  # Seconds

# (enable flag, host key, port key, proxy type), in priority order
_SCUTIL_PROTOCOLS: tuple[tuple[str, str, str, ProxyType], ...] = (
    ("SOCKSEnable", "SOCKSProxy", "SOCKSPort", ProxyType.SOCKS),
    ("HTTPSEnable", "HTTPSProxy", "HTTPSPort", ProxyType.HTTPS),
    ("HTTPEnable", "HTTPProxy", "HTTPPort", ProxyType.HTTP),
)

TUN_PREFIXES: tuple[str, ...] = ("utun", "tun")


def proxy_from_env(environ: Mapping[str, str]) -> ProxyStatus | None:
    """Report the first proxy variable set in ``environ``."""
    for key in ENV_KEYS:
        value = (environ.get(key) or "").strip()
        if not value:
            continue

        proxy_type = ProxyType.SOCKS if value.lower().startswith("socks") else ProxyType.HTTP
        host = host_of(value) or value
        return ProxyStatus(enabled=True, type=proxy_type, host=host)
    return None


def proxy_from_scutil_output(text: str) -> ProxyStatus | None:
    """Interpret the dictionary printed by ``scutil --proxy``."""
    if not text:
        return None

    for enable_key, host_key, port_key, proxy_type in _SCUTIL_PROTOCOLS:
        if dict_flag(text, enable_key):
            host = join_host_port(dict_value(text, host_key), dict_value(text, port_key))
            return ProxyStatus(enabled=True, type=proxy_type, host=host or "System Proxy")

    if dict_flag(text, "ProxyAutoConfigEnable"):
        host = host_of(dict_value(text, "ProxyAutoConfigURLString"))
        return ProxyStatus(enabled=True, type=ProxyType.PAC, host=host or "PAC")

    if dict_flag(text, "ProxyAutoDiscoveryEnable"):
        return ProxyStatus(enabled=True, type=ProxyType.WPAD, host="Auto Discovery")

    return None


def query_system_proxy(timeout: float = QUERY_TIMEOUT) -> str:
    """
    Run ``scutil --proxy`` and return its output.

    Failures and timeouts yield an empty string.
    """
    try:
        proc = subprocess.run(
            SCUTIL_COMMAND,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("System proxy query failed: %s", exc)
        return ""
    return proc.stdout


def proxy_from_tun_interfaces(counters: Mapping[str, InterfaceCounters]) -> ProxyStatus | None:
    """Report tunnel interfaces that have carried traffic."""
    active = sorted(
        name
        for name, c in counters.items()
        if name.lower().startswith(TUN_PREFIXES) and c.bytes_recv + c.bytes_sent > 0
    )
    if not active:
        return None

    host = active[0] + "+" if len(active) > 1 else active[0]
    return ProxyStatus(enabled=True, type=ProxyType.TUN, host=host)


def detect_proxy(
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
    query: Callable[[], str] = query_system_proxy,
    read: Callable[[], Mapping[str, InterfaceCounters]] = read_counters,
) -> ProxyStatus:
    """
    Run the detection cascade and return the first affirmative result.

    Args:
        environ: Environment to inspect. Defaults to ``os.environ``.
        platform: Platform name as in ``sys.platform``. The system query and
            tunnel heuristic only run on ``darwin``.
        query: Returns the ``scutil --proxy`` text.
        read: Returns fresh interface counters.
    """
    if environ is None:
        environ = os.environ
    if platform is None:
        platform = sys.platform

    status = proxy_from_env(environ)
    if status is not None:
        return status

    if platform != "darwin":
        return ProxyStatus.disabled()

    status = proxy_from_scutil_output(query())
    if status is not None:
        return status

    try:
        counters = read()
    except SnapshotError:
        logger.debug("Tunnel check skipped, counters unavailable")
        return ProxyStatus.disabled()

    return proxy_from_tun_interfaces(counters) or ProxyStatus.disabled()
