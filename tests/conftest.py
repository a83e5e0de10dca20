"""
Pytest configuration and fixtures for IPTV feed tests.
"""
import gzip

import pytest

from iptv_feeds.config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; start each test from the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_m3u_content():
    """Sample M3U content for testing."""
    return """#EXTM3U x-tvg-url="http://example.com/epg.xml"
#EXTINF:-1 tvg-id="ABC.us" tvg-logo="http://example.com/abc.png" group-title="News",ABC East
http://example.com/abc-east.m3u8
#EXTINF:-1 tvg-id="CNN.us" tvg-chno="42",CNN (1080p)
http://example.com/cnn.m3u8
#EXTINF:-1,Channel Without ID
http://example.com/no-id.m3u8
"""


@pytest.fixture
def sample_m3u_file(sample_m3u_content, tmp_path):
    """Create a temporary M3U file for testing."""
    m3u_file = tmp_path / "us_pluto.m3u"
    m3u_file.write_text(sample_m3u_content, encoding="utf-8")
    return m3u_file


@pytest.fixture
def sample_xspf_content():
    """Sample XSPF playlist with one unusable track."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<playlist version="1" xmlns="http://xspf.org/ns/0/">
  <title>Radio &amp; TV</title>
  <creator>Tester</creator>
  <trackList>
    <track>
      <title>Missing Location</title>
    </track>
    <track>
      <location>http://example.com/stream1.mp3</location>
      <title>Stream One</title>
      <creator>Artist</creator>
      <album>Album</album>
      <duration>180000</duration>
      <trackNum>3</trackNum>
      <image>http://example.com/cover.png</image>
    </track>
    <track>
      <location>http://example.com/music/song.ogg</location>
      <duration>long</duration>
    </track>
  </trackList>
</playlist>
"""


@pytest.fixture
def sample_xspf_file(sample_xspf_content, tmp_path):
    xspf_file = tmp_path / "radio.xspf"
    xspf_file.write_text(sample_xspf_content, encoding="utf-8")
    return xspf_file


@pytest.fixture
def sample_epg_xml():
    """Sample XMLTV EPG content for testing."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<tv>
    <channel id="ABC.us">
        <display-name>ABC</display-name>
        <display-name>ABC Network</display-name>
        <icon src="https://example.com/abc.png"/>
    </channel>
    <programme start="20251212020000 +0000" stop="20251212030000 +0000" channel="ABC.us">
        <title>Weather Update</title>
        <episode-num system="xmltv_ns">0.4.</episode-num>
    </programme>
    <programme start="20251212010000 +0000" stop="20251212020000 +0000" channel="ABC.us">
        <title>Morning News</title>
        <desc>Daily news broadcast</desc>
        <category>News</category>
        <icon src="https://example.com/news.png"/>
    </programme>
</tv>
"""


@pytest.fixture
def sample_epg_file(sample_epg_xml, tmp_path):
    """Create a temporary EPG XML file for testing."""
    epg_file = tmp_path / "test_guide.xml"
    epg_file.write_text(sample_epg_xml, encoding="utf-8")
    return epg_file


@pytest.fixture
def sample_epg_gz_file(sample_epg_xml, tmp_path):
    """Gzip-compressed guide saved without a .gz extension."""
    epg_file = tmp_path / "compressed_guide.xml"
    epg_file.write_bytes(gzip.compress(sample_epg_xml.encode("utf-8")))
    return epg_file
