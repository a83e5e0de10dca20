"""
XSPF Parser Service.
Parses XSPF ("spiff") XML playlists by boundary search and converts
their tracks into Channel records.
"""
import re
from pathlib import Path
from typing import Optional
import logging

from iptv_feeds.models.channel import Channel
from iptv_feeds.models.xspf import XspfPlaylist, XspfTrack

logger = logging.getLogger(__name__)

XSPF_NAMESPACE = "http://xspf.org/ns/0/"

TRACK_OPEN = re.compile(r"<track[\s>]")

MEDIA_EXTENSIONS = (".mp3", ".ogg", ".m4a", ".flac", ".ts", ".m3u8")

XML_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&apos;", "'"),
    ("&#39;", "'"),
)


class XSPFFormatError(ValueError):
    """Raised when text does not even minimally look like an XSPF playlist."""


def is_xspf(content: str) -> bool:
    """Check for a <playlist> with the XSPF namespace or a <trackList>."""
    return "<playlist" in content and (
        f'xmlns="{XSPF_NAMESPACE}"' in content
        or f"xmlns='{XSPF_NAMESPACE}'" in content
        or "<trackList" in content
    )


def decode_entities(text: str) -> str:
    """
    Decode the predefined XML entities.

    Only entities present in the raw text are replaced, ``&amp;`` first,
    so ``&amp;lt;`` alone gives ``&lt;``.
    """
    if "&" not in text:
        return text
    present = [(entity, char) for entity, char in XML_ENTITIES if entity in text]
    for entity, char in present:
        text = text.replace(entity, char)
    return text


def extract_tag(content: str, tag: str) -> Optional[str]:
    """
    Text of the first ``<tag>...</tag>`` in ``content``.

    Self-closing and empty elements give None.
    """
    match = re.search(rf"<{re.escape(tag)}[\s>/]", content)
    if not match:
        return None

    tag_end = content.find(">", match.start())
    if tag_end == -1 or content[tag_end - 1] == "/":
        return None

    close = content.find(f"</{tag}>", tag_end + 1)
    if close == -1:
        return None

    value = content[tag_end + 1:close].strip()
    return decode_entities(value) if value else None


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_track(block: str) -> Optional[XspfTrack]:
    location = extract_tag(block, "location")
    if location is None:
        return None

    return XspfTrack(
        location=location,
        title=extract_tag(block, "title"),
        creator=extract_tag(block, "creator"),
        album=extract_tag(block, "album"),
        annotation=extract_tag(block, "annotation"),
        duration=_to_int(extract_tag(block, "duration")),
        image=extract_tag(block, "image"),
        info=extract_tag(block, "info"),
        track_num=_to_int(extract_tag(block, "trackNum")),
    )


def parse_xspf(content: str) -> XspfPlaylist:
    """
    Parse XSPF text.

    Raises:
        XSPFFormatError: If there is no <playlist> or <trackList> at all
    """
    if "<playlist" not in content or "<trackList" not in content:
        raise XSPFFormatError("Not a valid XSPF playlist")

    list_start = content.find("<trackList")
    list_end = content.find("</trackList>", list_start)
    if list_end == -1:
        list_end = len(content)

    header = content[:list_start]
    playlist = XspfPlaylist(
        title=extract_tag(header, "title"),
        creator=extract_tag(header, "creator"),
        annotation=extract_tag(header, "annotation"),
        info=extract_tag(header, "info"),
        image=extract_tag(header, "image"),
    )

    track_list = content[list_start:list_end]
    pos = 0
    while True:
        match = TRACK_OPEN.search(track_list, pos)
        if not match:
            break
        end = track_list.find("</track>", match.start())
        if end == -1:
            break
        end += len("</track>")

        track = _parse_track(track_list[match.start():end])
        if track is not None:
            playlist.tracks.append(track)
        pos = end

    return playlist


def _name_from_location(location: str) -> str:
    name = location.rsplit("/", 1)[-1]
    for extension in MEDIA_EXTENSIONS:
        if name.endswith(extension):
            name = name[:-len(extension)]
    return name or "Unknown"


def to_channels(playlist: XspfPlaylist) -> list[Channel]:
    """Convert XSPF tracks into Channel records."""
    channels = []
    for track in playlist.tracks:
        if not track.location:
            continue

        if track.creator and track.album:
            group = f"{track.creator} - {track.album}"
        else:
            group = track.creator or track.album or playlist.title

        channels.append(Channel(
            name=track.title or _name_from_location(track.location),
            url=track.location,
            group=group,
            tvg_logo=track.image,
            tvg_name=track.title,
            tvg_chno=track.track_num,
            channel_number=track.track_num,
        ))
    return channels


class XSPFParser:
    """Parse XSPF playlist files."""

    def parse(self, content: str) -> list[Channel]:
        playlist = parse_xspf(content)
        channels = to_channels(playlist)
        logger.info(f"Parsed {len(channels)} tracks from XSPF playlist")
        return channels

    def parse_file(self, filepath: str | Path) -> list[Channel]:
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"XSPF file not found: {filepath}")

        logger.info(f"Parsing XSPF file: {filepath}")
        return self.parse(filepath.read_text(encoding="utf-8", errors="replace"))
