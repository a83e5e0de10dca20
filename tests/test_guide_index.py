"""
Tests for the program guide index.
"""
import pytest
from pathlib import Path
import sys

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from iptv_feeds.models.epg import EPGChannel, EPGData, Program
from iptv_feeds.services.guide_index import GuideIndex, adjusted_now

DAY = 86400
# 2024-01-15 00:00:00 UTC
MIDNIGHT = 1705276800


def make_program(title, start, stop, channel_id="c"):
    return Program(channel_id=channel_id, title=title, start=start, stop=stop)


@pytest.fixture
def guide():
    """
    Channel "c": A [1000, 2000), B [2000, 3000), gap, C [4000, 5000).
    """
    data = EPGData(
        channels={"c": EPGChannel(id="c", display_name="Channel C")},
        programs={"c": [
            make_program("A", 1000, 2000),
            make_program("B", 2000, 3000),
            make_program("C", 4000, 5000),
        ]},
    )
    return GuideIndex(data)


class TestCurrentProgram:
    """Now-playing lookups."""

    def test_inside_program(self, guide):
        assert guide.current_program("c", 1500).title == "A"

    def test_start_is_inclusive_stop_is_exclusive(self, guide):
        assert guide.current_program("c", 1000).title == "A"
        assert guide.current_program("c", 2000).title == "B"

    def test_gap_in_coverage(self, guide):
        assert guide.current_program("c", 3500) is None

    def test_before_and_after_schedule(self, guide):
        assert guide.current_program("c", 500) is None
        assert guide.current_program("c", 5000) is None

    def test_unknown_channel(self, guide):
        assert guide.current_program("nope", 1500) is None

    def test_overlap_returns_earliest(self):
        data = EPGData(programs={"c": [
            make_program("First", 0, 100),
            make_program("Second", 50, 150),
        ]})
        assert GuideIndex(data).current_program("c", 60).title == "First"


class TestUpcomingAndNext:
    """Forward-looking lookups."""

    def test_upcoming_starts_with_current(self, guide):
        titles = [p.title for p in guide.upcoming_programs("c", 1500, 2)]
        assert titles == ["A", "B"]

    def test_upcoming_from_gap(self, guide):
        titles = [p.title for p in guide.upcoming_programs("c", 3500, 5)]
        assert titles == ["C"]

    def test_upcoming_count_zero(self, guide):
        assert guide.upcoming_programs("c", 1500, 0) == []

    def test_next_program_skips_current(self, guide):
        assert guide.next_program("c", 1500).title == "B"
        assert guide.next_program("c", 3500).title == "C"
        assert guide.next_program("c", 4500) is None


class TestRanges:
    """Interval queries."""

    def test_overlap_is_half_open(self, guide):
        assert [p.title for p in guide.programs_in_range("c", 2000, 4000)] == ["B"]
        assert [p.title for p in guide.programs_in_range("c", 1999, 4001)] == ["A", "B", "C"]

    def test_empty_range(self, guide):
        assert guide.programs_in_range("c", 3000, 4000) == []

    def test_today_uses_utc_day(self):
        data = EPGData(programs={"c": [
            make_program("Late Yesterday", MIDNIGHT - 3600, MIDNIGHT + 600),
            make_program("Noon", MIDNIGHT + DAY // 2, MIDNIGHT + DAY // 2 + 3600),
            make_program("Tomorrow", MIDNIGHT + DAY, MIDNIGHT + DAY + 3600),
        ]})
        index = GuideIndex(data)
        titles = [p.title for p in index.today_programs("c", MIDNIGHT + 3600)]
        assert titles == ["Late Yesterday", "Noon"]

    def test_channel_name(self, guide):
        assert guide.channel_name("c") == "Channel C"
        assert guide.channel_name("nope") is None


class TestAdjustedNow:
    """Caller-side time zone shift."""

    def test_offset_subtracts_hours(self):
        assert adjusted_now(2, now=10000) == 10000 - 7200

    def test_fractional_offset(self):
        assert adjusted_now(-5.5, now=0) == 19800

    def test_defaults_to_clock(self):
        assert adjusted_now() > MIDNIGHT

    def test_shifted_lookup(self, guide):
        """A guide published a quarter hour ahead sees the earlier program."""
        assert guide.current_program("c", adjusted_now(0.25, now=2500)).title == "A"
