"""Parsing helpers for informal proxy configuration text."""

from urllib.parse import urlsplit


def dict_value(text: str, key: str) -> str:
    """
    Look up ``key`` in a ``key : value`` dictionary dump.

    The dump is treated as plain lines; braces and ``<dictionary>`` markers
    are never validated. Returns an empty string when the key is absent.
    """
    prefix = f"{key} :"
    for line in text.splitlines():
        line = line.strip()
        if line.startswith(prefix):
            return line[len(prefix):].strip()
    return ""


def dict_flag(text: str, key: str) -> bool:
    """Return True if ``key`` is present and set to ``1``."""
    return dict_value(text, key) == "1"


def host_of(raw: str) -> str:
    """
    Extract ``host[:port]`` from a proxy URL or a bare ``host:port`` string.

    Credentials are dropped. Returns an empty string for empty or
    unparsable input.
    """
    raw = raw.strip()
    if not raw:
        return ""

    target = raw if "://" in raw else f"http://{raw}"
    try:
        parts = urlsplit(target)
        parts.port  # Raises on a non-numeric port
    except ValueError:
        return ""
    # Strip userinfo, keep the authority
    return parts.netloc.rpartition("@")[2]


def join_host_port(host: str, port: str) -> str:
    """Join host and port, dropping a missing or non-numeric port."""
    host = host.strip()
    port = port.strip()
    if not host:
        return ""
    if not port:
        return host
    digits = port[1:] if port[0] in "+-" else port
    if not (digits.isascii() and digits.isdigit()):
        return host
    return f"{host}:{port}"
