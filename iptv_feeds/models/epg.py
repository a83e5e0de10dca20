"""
EPG (Electronic Program Guide) data models.
Times are seconds since the Unix epoch (UTC).
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

# Number of parse error messages kept on an EPGData result
MAX_STORED_ERRORS = 50


class Program(BaseModel):
    """TV program/show model from EPG data."""
    channel_id: str
    title: str
    description: Optional[str] = None
    start: int
    stop: int
    category: Optional[str] = None
    episode: Optional[str] = None  # e.g. "S01E05"
    icon: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        """Calculate program duration in minutes."""
        return (self.stop - self.start) // 60

    def is_live(self, now: int) -> bool:
        """Check if program is airing at ``now``."""
        return self.start <= now < self.stop

    def progress_percent(self, now: int) -> float:
        """Get playback progress as percentage (0-100)."""
        if not self.is_live(now):
            return 0.0 if now < self.start else 100.0
        total = self.stop - self.start
        elapsed = now - self.start
        return min(100.0, (elapsed / total) * 100)


class EPGChannel(BaseModel):
    """Channel info from EPG data."""
    id: str
    display_name: str = ""
    icon: Optional[str] = None


class EPGData(BaseModel):
    """Parsed guide: channels, programs per channel, and recovered errors."""
    channels: dict[str, EPGChannel] = Field(default_factory=dict)
    programs: dict[str, list[Program]] = Field(default_factory=dict)
    parse_errors: list[str] = Field(default_factory=list)
    parse_error_count: int = 0

    def program_count(self) -> int:
        return sum(len(progs) for progs in self.programs.values())

    def error_summary(self) -> Optional[str]:
        """Human readable error count, or None for a clean parse."""
        if self.parse_error_count == 0:
            return None
        if self.parse_error_count > len(self.parse_errors):
            return f"{self.parse_error_count} errors (showing first {len(self.parse_errors)})"
        return f"{self.parse_error_count} errors"


def format_time(ts: int) -> str:
    """Render a timestamp as local HH:MM."""
    return datetime.fromtimestamp(ts).strftime("%H:%M")


def format_datetime(ts: int) -> str:
    """Render a timestamp as local YYYY-MM-DD HH:MM."""
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")
