"""
Gzip detection for downloaded playlists and guides.
Sniffs the magic number without consuming bytes the parser needs.
"""
import gzip
import io
from typing import BinaryIO

GZIP_MAGIC = b"\x1f\x8b"


def is_gzip_stream(stream: io.BufferedReader) -> bool:
    """Check the first two bytes of a peekable stream for the gzip magic number."""
    return stream.peek(len(GZIP_MAGIC))[:len(GZIP_MAGIC)] == GZIP_MAGIC


def open_decompressed(stream: BinaryIO) -> BinaryIO:
    """
    Return a reader that yields decompressed bytes when ``stream`` is gzip,
    or the original bytes otherwise.

    Args:
        stream: Binary stream positioned at the start of the payload

    Returns:
        Binary stream starting at the same position
    """
    if not hasattr(stream, "peek"):
        stream = io.BufferedReader(stream)
    if is_gzip_stream(stream):
        return gzip.GzipFile(fileobj=stream, mode="rb")
    return stream
