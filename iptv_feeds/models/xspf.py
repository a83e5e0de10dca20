"""
XSPF (XML Shareable Playlist Format) data models.
"""
from pydantic import BaseModel, Field
from typing import Optional


class XspfTrack(BaseModel):
    """One <track> of an XSPF playlist."""
    location: str
    title: Optional[str] = None
    creator: Optional[str] = None
    album: Optional[str] = None
    annotation: Optional[str] = None
    duration: Optional[int] = None  # milliseconds
    image: Optional[str] = None
    info: Optional[str] = None
    track_num: Optional[int] = None


class XspfPlaylist(BaseModel):
    """Playlist-level metadata plus the ordered tracks."""
    title: Optional[str] = None
    creator: Optional[str] = None
    annotation: Optional[str] = None
    info: Optional[str] = None
    image: Optional[str] = None
    tracks: list[XspfTrack] = Field(default_factory=list)
