"""
M3U Parser Service.
Parses M3U/M3U8 playlists, including HLS master and media playlists,
into Channel records.
"""
import re
from pathlib import Path
from typing import Optional
import logging

from iptv_feeds.models.channel import Channel, Playlist

logger = logging.getLogger(__name__)

# key=value pairs on an EXTINF line; quoted values may contain \"
ATTR_PATTERN = re.compile(
    r'([A-Za-z0-9_-]+)=(?:"((?:\\"|[^"])*)"|([^\s,"]*))'
)

EPG_URL_PATTERN = re.compile(r'(?:x-tvg-url|url-tvg)="([^"]*)"', re.IGNORECASE)

HLS_MARKERS = (
    "#EXT-X-VERSION",
    "#EXT-X-TARGETDURATION",
    "#EXT-X-MEDIA-SEQUENCE",
    "#EXT-X-STREAM-INF",
    "#EXT-X-PLAYLIST-TYPE",
    "#EXT-X-ENDLIST",
)

HLS_MEDIA_GROUPS = {
    "VIDEO": "HLS Video",
    "AUDIO": "HLS Audio",
    "SUBTITLES": "HLS Subtitles",
}


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def is_hls(content: str) -> bool:
    """Check for HLS structural tags."""
    return any(marker in content for marker in HLS_MARKERS)


def extract_epg_url(content: str) -> Optional[str]:
    """Guide URL from an x-tvg-url / url-tvg attribute on the #EXTM3U header."""
    first_line = content.split("\n", 1)[0].lstrip("\ufeff").strip()
    if not first_line.startswith("#EXTM3U"):
        return None
    match = EPG_URL_PATTERN.search(first_line)
    return match.group(1) if match else None


def parse_attributes(text: str) -> dict[str, str]:
    """
    Scan ``key=value`` pairs left to right.

    Keys are lower-cased. Stray quotes in front of a key are skipped.
    """
    attrs = {}
    for match in ATTR_PATTERN.finditer(text):
        key = match.group(1).lower()
        quoted, bare = match.group(2), match.group(3)
        if quoted is not None:
            attrs[key] = quoted.replace('\\"', '"').strip()
        elif bare:
            attrs[key] = bare.strip()
    return attrs


def _split_extinf(info: str) -> Optional[tuple[str, str]]:
    """
    Split the text after ``EXTINF:`` into (attributes, display name).

    Handles both ``-1 attr="v",Name`` and ``10.0,attr="v",Name``.
    """
    first_comma = info.find(",")
    if first_comma == -1:
        return None

    if "=" in info[:first_comma]:
        last_comma = info.rfind(",")
        return info[:last_comma], info[last_comma + 1:].strip()

    tail = info[first_comma + 1:]
    last_comma = tail.rfind(",")
    if last_comma != -1 and "=" in tail[:last_comma]:
        return tail[:last_comma], tail[last_comma + 1:].strip()
    return "", tail.strip()


def _channel_from_extinf(name: str, attrs: dict[str, str], url: str) -> Channel:
    return Channel(
        name=name,
        url=url,
        group=attrs.get("group-title") or None,
        tvg_id=attrs.get("tvg-id") or None,
        tvg_name=attrs.get("tvg-name") or None,
        tvg_logo=attrs.get("tvg-logo") or None,
        tvg_chno=_to_int(attrs.get("tvg-chno")),
        channel_id=attrs.get("channel-id") or None,
        channel_number=_to_int(attrs.get("channel-number")),
        catchup=attrs.get("catchup") or None,
        catchup_days=_to_int(attrs.get("catchup-days")),
    )


def _parse_classic(content: str) -> list[Channel]:
    channels = []
    pending: Optional[tuple[str, dict[str, str]]] = None

    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue

        if line.startswith("#EXTINF:") or line.startswith("EXTINF:"):
            info = line.split(":", 1)[1]
            split = _split_extinf(info)
            pending = None
            if split is not None:
                attrs_text, name = split
                pending = (name, parse_attributes(attrs_text))
        elif line.startswith("#"):
            continue
        elif pending is not None:
            # This is the URL line
            name, attrs = pending
            channels.append(_channel_from_extinf(name, attrs, line))
            pending = None

    return channels


def _hls_attr(line: str, name: str) -> Optional[str]:
    """Attribute value from an HLS tag line, quoted or up to the next comma."""
    match = re.search(rf'(?:^|[:,]){re.escape(name)}=(?:"([^"]*)"|([^,]*))', line)
    if not match:
        return None
    value = match.group(1) if match.group(1) is not None else match.group(2)
    return value.strip()


def format_bandwidth(bandwidth: int) -> str:
    if bandwidth >= 1_000_000:
        return f"{bandwidth / 1_000_000:.1f} Mbps"
    if bandwidth >= 1_000:
        return f"{bandwidth // 1_000} Kbps"
    return f"{bandwidth} bps"


def hdr_label(line: str) -> Optional[str]:
    """SDR / Dolby Vision / HDR10 label from VIDEO-RANGE and CODECS."""
    video_range = (_hls_attr(line, "VIDEO-RANGE") or "").upper()
    if video_range == "SDR":
        return "SDR"
    if video_range in ("PQ", "HLG"):
        codecs = (_hls_attr(line, "CODECS") or "").lower()
        return "Dolby Vision" if "dvh" in codecs else "HDR10"
    return None


def _variant_name(line: str, index: int) -> str:
    explicit = _hls_attr(line, "NAME")
    if explicit:
        return explicit

    parts = []
    resolution = _hls_attr(line, "RESOLUTION")
    if resolution:
        parts.append(resolution)
    bandwidth = _to_int(_hls_attr(line, "BANDWIDTH"))
    if bandwidth is not None:
        parts.append(format_bandwidth(bandwidth))
    label = hdr_label(line)
    if label:
        parts.append(label)
    return " - ".join(parts) if parts else f"Stream {index}"


def _media_channel(line: str) -> Optional[Channel]:
    uri = _hls_attr(line, "URI")
    if not uri:
        return None
    # Default renditions are already reachable through their variant
    if (_hls_attr(line, "DEFAULT") or "").upper() == "YES":
        return None

    name = _hls_attr(line, "NAME") or "Alternate"
    group_id = _hls_attr(line, "GROUP-ID")
    if group_id:
        name = f"{name} ({group_id})"
    media_type = (_hls_attr(line, "TYPE") or "").upper()
    return Channel(name=name, url=uri, group=HLS_MEDIA_GROUPS.get(media_type, "HLS Alternate"))


def _parse_hls(content: str) -> list[Channel]:
    channels = []
    pending_variant: Optional[str] = None
    variant_count = 0
    has_stream_inf = False
    has_target_duration = False

    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue

        if line.startswith("#EXT-X-STREAM-INF"):
            has_stream_inf = True
            pending_variant = line
        elif line.startswith("#EXT-X-I-FRAME-STREAM-INF"):
            continue
        elif line.startswith("#EXT-X-MEDIA:"):
            channel = _media_channel(line)
            if channel is not None:
                channels.append(channel)
        elif line.startswith("#EXT-X-TARGETDURATION"):
            has_target_duration = True
        elif line.startswith("#"):
            continue
        elif pending_variant is not None:
            variant_count += 1
            channels.append(Channel(
                name=_variant_name(pending_variant, variant_count),
                url=line,
                group="HLS",
            ))
            pending_variant = None

    if not has_stream_inf and has_target_duration:
        # Media playlist: the caller knows the URL it was fetched from
        return [Channel(name="HLS Stream", url="", group="HLS")]
    return channels


def parse_m3u(content: str) -> list[Channel]:
    """Parse M3U or HLS text into channels in document order."""
    if is_hls(content):
        return _parse_hls(content)
    return _parse_classic(content)


def parse_m3u_playlist(content: str) -> Playlist:
    """Parse M3U text into channels plus the header's guide URL."""
    return Playlist(channels=parse_m3u(content), epg_url=extract_epg_url(content))


class M3UParser:
    """Parse M3U playlist files."""

    def parse(self, content: str) -> Playlist:
        playlist = parse_m3u_playlist(content)
        logger.info(f"Parsed {len(playlist.channels)} channels from M3U playlist")
        return playlist

    def parse_file(self, filepath: str | Path) -> Playlist:
        """
        Parse a single M3U file.

        Args:
            filepath: Path to the M3U file

        Returns:
            Parsed playlist
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"M3U file not found: {filepath}")

        logger.info(f"Parsing M3U file: {filepath}")
        return self.parse(filepath.read_text(encoding="utf-8", errors="replace"))
