"""
Minimal HTTP/1.1 client for Xtream-style key/value API requests.
One GET per connection, reads to EOF, decodes chunked bodies.
"""
import json
import logging
import socket
import ssl
from typing import Any, NamedTuple, Optional
from urllib.parse import urlsplit

from iptv_feeds.config import get_settings

logger = logging.getLogger(__name__)


class RawHTTPError(OSError):
    """Raised for unusable URLs, unparseable responses, and error statuses."""


class HttpTarget(NamedTuple):
    scheme: str
    host: str
    port: int
    path: str


class RawResponse(NamedTuple):
    status: int
    headers: dict[str, str]
    body: bytes

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.text())

    def raise_for_status(self) -> None:
        if not 200 <= self.status < 300:
            raise RawHTTPError(f"HTTP error: {self.status}")


def parse_http_url(url: str) -> HttpTarget:
    """Split an http(s) URL into scheme, host, port and request path."""
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise RawHTTPError(f"Invalid URL: {url}")

    try:
        port = parts.port
    except ValueError as e:
        raise RawHTTPError(f"Invalid port in URL: {url}") from e
    if port is None:
        port = 443 if parts.scheme == "https" else 80

    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return HttpTarget(parts.scheme, parts.hostname, port, path)


def decode_chunked(body: bytes) -> bytes:
    """
    Decode a ``Transfer-Encoding: chunked`` body.

    Stops at the zero-size chunk. A truncated or malformed chunk ends
    decoding and returns what was accumulated so far.
    """
    result = bytearray()
    pos = 0
    while True:
        line_end = body.find(b"\r\n", pos)
        if line_end == -1:
            break

        size_field = body[pos:line_end].split(b";", 1)[0].strip()
        try:
            size = int(size_field, 16)
        except ValueError:
            break
        if size <= 0:
            break

        start = line_end + 2
        end = start + size
        if end > len(body):
            break
        result += body[start:end]

        pos = end
        if body.startswith(b"\r\n", pos):
            pos += 2
    return bytes(result)


def _split_response(raw: bytes) -> RawResponse:
    head, sep, body = raw.partition(b"\r\n\r\n")
    if not sep:
        raise RawHTTPError("Invalid HTTP response")

    lines = head.decode("iso-8859-1").split("\r\n")
    status_parts = lines[0].split(" ", 2)
    try:
        status = int(status_parts[1])
    except (IndexError, ValueError) as e:
        raise RawHTTPError(f"Invalid HTTP status line: {lines[0]!r}") from e

    headers = {}
    for line in lines[1:]:
        name, colon, value = line.partition(":")
        if colon:
            headers[name.strip().lower()] = value.strip()

    if "chunked" in headers.get("transfer-encoding", "").lower():
        body = decode_chunked(body)
    return RawResponse(status, headers, body)


def http_get(url: str, user_agent: str, timeout: Optional[float] = None) -> RawResponse:
    """
    Issue a single GET with ``Connection: close`` and read the whole response.

    Args:
        url: http or https URL
        user_agent: Client identity string
        timeout: Socket timeout for connect and each read; defaults to
            the api_timeout setting

    Returns:
        Status, lower-cased headers, and the (de-chunked) body
    """
    target = parse_http_url(url)
    if timeout is None:
        timeout = get_settings().api_timeout
    host_header = target.host
    if target.port not in (80, 443):
        host_header = f"{target.host}:{target.port}"

    request = (
        f"GET {target.path} HTTP/1.1\r\n"
        f"Host: {host_header}\r\n"
        "Connection: close\r\n"
        f"User-Agent: {user_agent}\r\n"
        "Accept: application/json\r\n"
        "\r\n"
    ).encode("utf-8")

    logger.debug(f"GET {target.scheme}://{host_header}{target.path}")
    with socket.create_connection((target.host, target.port), timeout=timeout) as sock:
        conn = sock
        if target.scheme == "https":
            conn = ssl.create_default_context().wrap_socket(sock, server_hostname=target.host)
        try:
            conn.sendall(request)
            chunks = []
            while True:
                data = conn.recv(65536)
                if not data:
                    break
                chunks.append(data)
        finally:
            if conn is not sock:
                conn.close()

    return _split_response(b"".join(chunks))


def get_json(url: str, user_agent: str, timeout: Optional[float] = None) -> Any:
    """GET a JSON document, raising RawHTTPError on a non-2xx status."""
    response = http_get(url, user_agent, timeout)
    response.raise_for_status()
    return response.json()
