"""
Playlist Catalog Service.
Sniffs a playlist's format and dispatches it to the matching parser.
"""
import logging
from typing import Optional

import httpx

from iptv_feeds.models.channel import Playlist
from iptv_feeds.services.downloader import RetryConfig, download_text
from iptv_feeds.services.m3u_parser import is_hls, parse_m3u_playlist
from iptv_feeds.services.xspf_parser import is_xspf, parse_xspf, to_channels

logger = logging.getLogger(__name__)


def detect_format(content: str) -> str:
    """Return "xspf", "hls" or "m3u"."""
    if is_xspf(content):
        return "xspf"
    if is_hls(content):
        return "hls"
    return "m3u"


def parse_playlist(content: str, source: Optional[str] = None) -> Playlist:
    """
    Parse playlist text of any supported format into a Playlist.

    Raises:
        XSPFFormatError: If XSPF-looking text has no <trackList>
    """
    kind = detect_format(content)
    if kind == "xspf":
        playlist = Playlist(channels=to_channels(parse_xspf(content)))
    else:
        playlist = parse_m3u_playlist(content)

    logger.debug(f"Detected {kind} playlist with {len(playlist.channels)} channels")
    if source is not None:
        playlist = playlist.with_source(source)
    return playlist


def load_playlist(
    url: str,
    config: RetryConfig,
    source: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Playlist:
    """
    Download and parse a playlist.

    HLS media playlists come back as one placeholder channel with no URL;
    it is pointed at ``url`` itself.
    """
    content = download_text(url, config, client=client)
    playlist = parse_playlist(content, source=source)

    channels = [
        channel.model_copy(update={"url": url}) if not channel.url else channel
        for channel in playlist.channels
    ]
    logger.info(f"Loaded {len(channels)} channels from {url}")
    return Playlist(channels=channels, epg_url=playlist.epg_url)
