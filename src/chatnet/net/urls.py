import re
from typing import Literal
from urllib.parse import urlsplit

_LAN_PATTERN = re.compile(r"^192\.168\.\d+\.\d+")
_LOCAL_HOSTS = ("localhost", "127.0.0.1", "10.0.2.2")

UrlType = Literal["localhost", "lan", "production"]


def validate_base_url(url: str) -> str:
    """Return ``url`` without a trailing slash, or raise ``ValueError``."""
    if not isinstance(url, str) or not url.strip():
        raise ValueError("Base URL must be a non-empty string")
    cleaned = url.strip().rstrip("/")
    parts = urlsplit(cleaned)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Malformed base URL: {url!r}")
    return cleaned


def join_url(base_url: str, path: str) -> str:
    if not path:
        return base_url
    if not path.startswith("/"):
        path = "/" + path
    return f"{base_url}{path}"


def strip_query(path: str) -> str:
    return path.split("?", 1)[0]


def get_socket_url(base_url: str) -> str:
    """The Socket.IO endpoint for a backend base URL."""
    return f"{base_url.rstrip('/')}/socket.io"


def to_websocket_url(base_url: str) -> str:
    """The Engine.IO websocket URL for a backend base URL."""
    url = get_socket_url(validate_base_url(base_url))
    if url.startswith("https://"):
        url = "wss://" + url[len("https://"):]
    elif url.startswith("http://"):
        url = "ws://" + url[len("http://"):]
    return f"{url}/?EIO=4&transport=websocket"


def _host(url: str) -> str:
    return urlsplit(url).hostname or url


def is_localhost(url: str) -> bool:
    return any(host in url for host in _LOCAL_HOSTS)


def is_lan_ip(url: str) -> bool:
    return bool(_LAN_PATTERN.match(_host(url)))


def get_url_type(url: str) -> UrlType:
    if is_localhost(url):
        return "localhost"
    if is_lan_ip(url):
        return "lan"
    return "production"
