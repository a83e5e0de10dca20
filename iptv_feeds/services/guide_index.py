"""
Program Guide Index.
Answers now/next/range queries over parsed EPG data.
"""
import bisect
import time
from typing import Optional

from iptv_feeds.models.epg import EPGData, Program

SECONDS_PER_DAY = 86400


def adjusted_now(offset_hours: float = 0.0, now: Optional[int] = None) -> int:
    """
    Current time shifted for a guide published in another time zone.

    Args:
        offset_hours: Fractional hours to subtract from the real clock
        now: Unix seconds to shift instead of the current time
    """
    if now is None:
        now = int(time.time())
    return now - int(offset_hours * 3600)


class GuideIndex:
    """
    Read-only queries over an EPGData snapshot.

    Relies on every channel's program list being sorted by start time,
    which EPGParser guarantees. To refresh, build a new index over new
    data instead of mutating the old one.
    """

    def __init__(self, data: EPGData):
        self.data = data

    def programs(self, channel_id: str) -> list[Program]:
        return self.data.programs.get(channel_id, [])

    def _first_unfinished(self, programs: list[Program], now: int) -> int:
        # Partition point: first program whose stop is after now
        return bisect.bisect_right(programs, now, key=lambda p: p.stop)

    def current_program(self, channel_id: str, now: int) -> Optional[Program]:
        """Program airing at ``now``, or None for a gap in coverage."""
        programs = self.programs(channel_id)
        index = self._first_unfinished(programs, now)
        if index < len(programs) and programs[index].start <= now:
            return programs[index]
        return None

    def upcoming_programs(self, channel_id: str, now: int, count: int) -> list[Program]:
        """Up to ``count`` programs from the one airing (or next) at ``now``."""
        programs = self.programs(channel_id)
        index = self._first_unfinished(programs, now)
        return programs[index:index + max(count, 0)]

    def next_program(self, channel_id: str, now: int) -> Optional[Program]:
        """First program starting after ``now``."""
        programs = self.programs(channel_id)
        for program in programs[self._first_unfinished(programs, now):]:
            if program.start > now:
                return program
        return None

    def programs_in_range(self, channel_id: str, start: int, end: int) -> list[Program]:
        """Programs overlapping the half-open interval [start, end)."""
        return [
            p for p in self.programs(channel_id)
            if p.stop > start and p.start < end
        ]

    def today_programs(self, channel_id: str, now: int) -> list[Program]:
        """Programs overlapping the UTC calendar day containing ``now``."""
        day_start = (now // SECONDS_PER_DAY) * SECONDS_PER_DAY
        return self.programs_in_range(channel_id, day_start, day_start + SECONDS_PER_DAY)

    def channel_name(self, channel_id: str) -> Optional[str]:
        channel = self.data.channels.get(channel_id)
        return channel.display_name if channel else None
