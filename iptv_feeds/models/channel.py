"""
Channel, Playlist, and Credentials data models.
Unified records produced by the M3U/M3U8 and XSPF parsers.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class Channel(BaseModel):
    """Playable channel entry taken from a playlist."""
    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    group: Optional[str] = None
    tvg_id: Optional[str] = None
    tvg_name: Optional[str] = None  # Alternate EPG matching name
    tvg_logo: Optional[str] = None
    tvg_chno: Optional[int] = None
    channel_id: Optional[str] = None
    channel_number: Optional[int] = None
    catchup: Optional[str] = None
    catchup_days: Optional[int] = None

    # Label of the playlist that contributed this channel
    source: Optional[str] = None

    @property
    def epg_id(self) -> Optional[str]:
        """Identifier used to link the channel to guide data."""
        return self.tvg_id or self.channel_id

    @property
    def number(self) -> Optional[int]:
        """Channel number, preferring tvg-chno."""
        return self.tvg_chno if self.tvg_chno is not None else self.channel_number


class Playlist(BaseModel):
    """Result of parsing one playlist document."""
    channels: list[Channel] = Field(default_factory=list)
    epg_url: Optional[str] = None

    def groups(self) -> list[str]:
        """Distinct group labels in first-seen order."""
        seen: dict[str, None] = {}
        for channel in self.channels:
            if channel.group:
                seen.setdefault(channel.group, None)
        return list(seen)

    def with_source(self, source: str) -> "Playlist":
        """Copy of the playlist with every channel tagged with a source label."""
        return Playlist(
            channels=[c.model_copy(update={'source': source}) for c in self.channels],
            epg_url=self.epg_url,
        )


class Credentials(BaseModel):
    """Xtream-style server credentials found in a playlist URL."""
    model_config = ConfigDict(frozen=True)

    server: str
    username: str
    password: str
