"""
Xtream-style credential extraction from playlist URLs.
"""
from typing import Optional
from urllib.parse import urlsplit

from iptv_feeds.models.channel import Credentials

PATH_PREFIXES = ("live", "movie", "series")


def _server_base(url: str) -> Optional[str]:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def _from_query(url: str) -> Optional[Credentials]:
    if "?" not in url:
        return None
    query = url.split("?", 1)[1].split("#", 1)[0]

    params = {}
    for pair in query.split("&"):
        key, sep, value = pair.partition("=")
        if sep:
            params[key] = value

    username = params.get("username", params.get("user"))
    password = params.get("password", params.get("pass"))
    server = _server_base(url)
    if username is None or password is None or server is None:
        return None
    return Credentials(server=server, username=username, password=password)


def _from_path(url: str) -> Optional[Credentials]:
    server = _server_base(url)
    if server is None:
        return None
    segments = [s for s in urlsplit(url).path.split("/") if s]

    # live/{user}/{pass}/...
    if len(segments) >= 3 and segments[0].lower() in PATH_PREFIXES:
        return Credentials(server=server, username=segments[1], password=segments[2])

    # {user}/{pass}/... ; a dot means a filename, not a credential
    if len(segments) >= 2:
        first, second = segments[0], segments[1]
        if "." not in first and "." not in second and len(first) > 1 and len(second) > 1:
            return Credentials(server=server, username=first, password=second)

    return None


def extract_credentials(url: str) -> Optional[Credentials]:
    """
    Find server, username and password in a playlist URL.

    Tries ``?username=..&password=..`` (or ``user``/``pass``) first, then
    ``/live/{user}/{pass}/...`` and bare ``/{user}/{pass}/...`` paths.
    """
    url = url.strip()
    return _from_query(url) or _from_path(url)
