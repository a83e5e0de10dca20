"""
Feed Inspection Script.
Loads a playlist or XMLTV guide from a path or URL and prints a summary.

Usage:
    python -m iptv_feeds.scripts.inspect_feed playlist.m3u
    python -m iptv_feeds.scripts.inspect_feed https://example.com/guide.xml.gz --channel bbc1
"""
import argparse
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Optional

from iptv_feeds.config import get_settings, setup_logging
from iptv_feeds.models.channel import Playlist
from iptv_feeds.models.epg import EPGData, format_datetime, format_time
from iptv_feeds.services.catalog import load_playlist, parse_playlist
from iptv_feeds.services.downloader import DownloadError, RetryConfig, download_and_parse
from iptv_feeds.services.epg_parser import EPGParser
from iptv_feeds.services.guide_index import GuideIndex, adjusted_now
from iptv_feeds.services.xspf_parser import XSPFFormatError

logger = logging.getLogger(__name__)

EPG_SUFFIXES = (".xml", ".gz", ".xmltv")


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def guess_kind(source: str) -> str:
    path = source.split("?", 1)[0].lower()
    return "epg" if path.endswith(EPG_SUFFIXES) else "playlist"


def load_source_playlist(source: str, config: RetryConfig) -> Playlist:
    if is_url(source):
        return load_playlist(source, config, source=source)
    text = Path(source).read_text(encoding="utf-8", errors="replace")
    return parse_playlist(text, source=Path(source).name)


def load_source_epg(source: str, config: RetryConfig) -> EPGData:
    if is_url(source):
        return download_and_parse(source, config)
    return EPGParser().parse_file(source)


def print_playlist(playlist: Playlist) -> None:
    print(f"Channels: {len(playlist.channels)}")
    if playlist.epg_url:
        print(f"EPG URL: {playlist.epg_url}")

    counts = Counter(c.group or "(no group)" for c in playlist.channels)
    for group, count in counts.most_common(20):
        print(f"  {group}: {count}")

    for channel in playlist.channels[:10]:
        number = f"{channel.number:>4} " if channel.number is not None else "     "
        print(f"{number}{channel.name} -> {channel.url}")


def print_epg(data: EPGData, channel_id: Optional[str], offset_hours: float) -> None:
    print(f"Channels: {len(data.channels)}")
    print(f"Programs: {data.program_count()}")

    summary = data.error_summary()
    if summary:
        print(f"Parse errors: {summary}")
        for message in data.parse_errors[:5]:
            print(f"  {message}")

    if not channel_id:
        return

    index = GuideIndex(data)
    now = adjusted_now(offset_hours)
    name = index.channel_name(channel_id) or channel_id
    print(f"\n{name}")

    current = index.current_program(channel_id, now)
    if current:
        print(f"  Now:  {format_time(current.start)}-{format_time(current.stop)} "
              f"{current.title} ({current.progress_percent(now):.0f}%)")
    else:
        print("  Now:  (no program)")

    upcoming = index.next_program(channel_id, now)
    if upcoming:
        print(f"  Next: {format_datetime(upcoming.start)} {upcoming.title}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Inspect an IPTV playlist or XMLTV guide')
    parser.add_argument('source', help='File path or http(s) URL')
    parser.add_argument('--kind', choices=['playlist', 'epg'], help='Force the feed type')
    parser.add_argument('--channel', help='Guide channel id to show now/next for')
    parser.add_argument('--offset', type=float, default=None,
                        help='Hours to shift "now" for guides in another time zone')
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level)
    config = RetryConfig.from_settings(settings)
    offset = args.offset if args.offset is not None else settings.epg_time_offset_hours

    kind = args.kind or guess_kind(args.source)
    try:
        if kind == "epg":
            print_epg(load_source_epg(args.source, config), args.channel, offset)
        else:
            print_playlist(load_source_playlist(args.source, config))
    except (DownloadError, XSPFFormatError, FileNotFoundError) as e:
        logger.error(f"Failed to load {args.source}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
