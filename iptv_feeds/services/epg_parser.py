"""
EPG Parser Service.
Streams XMLTV guide data (plain or gzip, any size) into EPGData without
building a document tree, recovering from malformed bytes and XML errors.
"""
import io
import logging
import re
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional

from lxml import etree

from iptv_feeds.models.epg import MAX_STORED_ERRORS, EPGChannel, EPGData, Program
from iptv_feeds.services.compression import open_decompressed

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

# Control bytes other than tab/LF/CR, plus DEL
_CONTROL_BYTES = bytes(b for b in range(0x20) if b not in (0x09, 0x0A, 0x0D)) + b"\x7f"
_CONTROL_TO_SPACE = bytes.maketrans(_CONTROL_BYTES, b" " * len(_CONTROL_BYTES))

# "&" that does not start "&#..." or a short named entity "&name;"
BARE_AMPERSAND = re.compile(rb"&(?!#|[A-Za-z0-9]{1,8};)")

# "&" + 8 name characters + ";"
ENTITY_WINDOW = 10

# HTML entity common in guide text; not defined in XML
NBSP_ENTITY = b"&nbsp;"

DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


class SanitizingReader:
    """
    Read-through filter that makes real-world guide bytes safe to tokenize.

    Maps XML-illegal control bytes to spaces, turns the HTML ``&nbsp;``
    entity into a space and rewrites bare ``&`` as ``&amp;``. An ``&``
    close to the end of a read is held back until the next read so entity
    detection never sees a split reference.
    """

    def __init__(self, raw: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._raw = raw
        self.chunk_size = chunk_size
        self._buffer = bytearray()
        self._pending = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def _fill(self) -> None:
        raw = self._raw.read(self.chunk_size)
        if not raw:
            self._eof = True
            data, self._pending = self._pending, b""
        else:
            data, self._pending = self._pending + raw, b""
            amp = data.rfind(b"&", max(0, len(data) - ENTITY_WINDOW))
            if amp != -1:
                data, self._pending = data[:amp], data[amp:]

        data = data.translate(_CONTROL_TO_SPACE).replace(NBSP_ENTITY, b" ")
        self._buffer += BARE_AMPERSAND.sub(b"&amp;", data)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            parts = []
            while chunk := self.read(self.chunk_size):
                parts.append(chunk)
            return b"".join(parts)

        while len(self._buffer) < size and not self._eof:
            self._fill()
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def close(self) -> None:
        self._raw.close()


def _int_or(text: str, default: int) -> int:
    try:
        return int(text)
    except ValueError:
        return default


def is_leap_year(year: int) -> bool:
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def parse_tz_offset(tz: str) -> int:
    """Seconds east of UTC for "+HHMM", "-HHMM" or "+HH"."""
    tz = tz.strip()
    if not tz:
        return 0

    sign = -1 if tz.startswith("-") else 1
    tz = tz.lstrip("+-")
    if len(tz) >= 4:
        return sign * (_int_or(tz[0:2], 0) * 3600 + _int_or(tz[2:4], 0) * 60)
    if len(tz) >= 2:
        return sign * _int_or(tz[0:2], 0) * 3600
    return 0


def parse_xmltv_time(value: str) -> int:
    """
    Parse an XMLTV timestamp into Unix seconds.

    Format: 20251212040000 +0000, 20251212040000+0000 or 20251212040000.
    Unparseable fields fall back to year 2024, month/day 1 and time 0;
    anything shorter than 14 characters is 0.
    """
    value = value.strip()
    if " " in value:
        datetime_part, tz = value.split(" ", 1)
        tz_offset = parse_tz_offset(tz)
    elif len(value) > 14:
        datetime_part, tz_offset = value[:14], parse_tz_offset(value[14:])
    else:
        datetime_part, tz_offset = value, 0

    if len(datetime_part) < 14:
        return 0

    year = _int_or(datetime_part[0:4], 2024)
    month = _int_or(datetime_part[4:6], 1)
    day = _int_or(datetime_part[6:8], 1)
    hour = _int_or(datetime_part[8:10], 0)
    minute = _int_or(datetime_part[10:12], 0)
    second = _int_or(datetime_part[12:14], 0)

    days = sum(366 if is_leap_year(y) else 365 for y in range(1970, year))
    for m in range(1, min(month, 13)):
        days += DAYS_IN_MONTH[m - 1]
        if m == 2 and is_leap_year(year):
            days += 1
    days += day - 1

    return days * 86400 + hour * 3600 + minute * 60 + second - tz_offset


def format_episode(episode: str) -> str:
    """Turn xmltv_ns "season.episode.part" (zero based) into "S01E05"."""
    episode = episode.strip()
    parts = episode.split(".")
    if len(parts) >= 2:
        season = _int_or(parts[0].strip(), -1) + 1
        number = _int_or(parts[1].strip(), -1) + 1
        if season > 0 and number > 0:
            return f"S{season:02}E{number:02}"
    return episode


class ParseState(Enum):
    ROOT = "root"
    CHANNEL = "channel"
    PROGRAMME = "programme"
    TITLE = "title"
    DESC = "desc"
    CATEGORY = "category"
    DISPLAY_NAME = "display-name"
    EPISODE_NUM = "episode-num"


CONTAINER_STATES = (ParseState.ROOT, ParseState.CHANNEL, ParseState.PROGRAMME)

PROGRAMME_FIELDS = {
    "title": ParseState.TITLE,
    "desc": ParseState.DESC,
    "category": ParseState.CATEGORY,
    "episode-num": ParseState.EPISODE_NUM,
}


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rpartition("}")[2]


class XMLTVTarget:
    """
    lxml parser target that walks XMLTV events through ParseState.

    When attached to a parser, a channel or programme during which the
    parser logged an error is dropped instead of committed.
    """

    def __init__(self, parser: Optional[etree.XMLParser] = None):
        self.parser = parser
        self.result = EPGData()
        self.state = ParseState.ROOT
        self.channel: Optional[dict] = None
        self.program: Optional[dict] = None
        self.text: list[str] = []
        self.record_log_start = 0

    def reset(self) -> None:
        """Drop any half-built record and return to the document level."""
        self.channel = None
        self.program = None
        self.text = []
        self.state = ParseState.ROOT

    def _log_length(self) -> int:
        if self.parser is None:
            return 0
        return len(self.parser.feed_error_log)

    def _record_had_errors(self) -> bool:
        """Check the parser log for errors since the current record started."""
        if self.parser is None:
            return False
        entries = list(self.parser.feed_error_log)[self.record_log_start:]
        return any(entry.level >= etree.ErrorLevels.ERROR for entry in entries)

    def start(self, tag, attrib) -> None:
        name = _local_name(tag)

        if name == "channel":
            self.state = ParseState.CHANNEL
            self.record_log_start = self._log_length()
            self.channel = {"id": attrib.get("id", ""), "display_name": "", "icon": None}
        elif name == "programme":
            self.state = ParseState.PROGRAMME
            self.record_log_start = self._log_length()
            self.program = {
                "channel_id": attrib.get("channel", ""),
                "title": "",
                "start": parse_xmltv_time(attrib.get("start", "")),
                "stop": parse_xmltv_time(attrib.get("stop", "")),
            }
        elif name in PROGRAMME_FIELDS and self.state == ParseState.PROGRAMME:
            self.state = PROGRAMME_FIELDS[name]
            self.text = []
        elif name == "display-name" and self.state == ParseState.CHANNEL:
            self.state = ParseState.DISPLAY_NAME
            self.text = []
        elif name == "icon":
            src = attrib.get("src")
            if src:
                if self.state == ParseState.CHANNEL and self.channel is not None:
                    self.channel["icon"] = src
                elif self.state == ParseState.PROGRAMME and self.program is not None:
                    self.program["icon"] = src

    def data(self, text: str) -> None:
        if self.state not in CONTAINER_STATES:
            self.text.append(text)

    def end(self, tag) -> None:
        name = _local_name(tag)

        if name == "channel":
            if not self._record_had_errors():
                self._commit_channel()
            self.reset()
        elif name == "programme":
            if not self._record_had_errors():
                self._commit_program()
            self.reset()
        elif self.state not in CONTAINER_STATES and self.state.value == name:
            value = "".join(self.text).strip()
            self.text = []
            if self.state == ParseState.DISPLAY_NAME:
                if self.channel is not None and not self.channel["display_name"]:
                    self.channel["display_name"] = value
                self.state = ParseState.CHANNEL
                return

            if self.program is not None:
                if self.state == ParseState.TITLE:
                    self.program["title"] = value
                elif self.state == ParseState.DESC and value:
                    self.program["description"] = value
                elif self.state == ParseState.CATEGORY and value:
                    self.program["category"] = value
                elif self.state == ParseState.EPISODE_NUM:
                    episode = format_episode(value)
                    if episode:
                        self.program["episode"] = episode
            self.state = ParseState.PROGRAMME

    def _commit_channel(self) -> None:
        channel = self.channel
        if channel is None or not channel["id"]:
            return
        previous = self.result.channels.get(channel["id"])
        if previous is not None and not channel["display_name"]:
            channel["display_name"] = previous.display_name
        self.result.channels[channel["id"]] = EPGChannel(**channel)

    def _commit_program(self) -> None:
        program = self.program
        if program is None or not program["channel_id"] or not program["title"]:
            return
        self.result.programs.setdefault(program["channel_id"], []).append(Program(**program))

    def record_error(self, message: str) -> None:
        self.result.parse_error_count += 1
        if len(self.result.parse_errors) < MAX_STORED_ERRORS:
            self.result.parse_errors.append(message)

    def close(self) -> EPGData:
        return self.result

    def finish(self) -> EPGData:
        """Sort every channel's programs by start time."""
        for programs in self.result.programs.values():
            programs.sort(key=lambda p: p.start)
        return self.result


class EPGParser:
    """Parse XMLTV format EPG data."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = chunk_size

    def parse(self, text: str) -> EPGData:
        """Parse an in-memory XMLTV document as given, without byte filtering."""
        return self._parse_reader(io.BytesIO(text.encode("utf-8")))

    def parse_stream(self, stream: BinaryIO) -> EPGData:
        """Parse an already decompressed byte stream through the sanitizing layer."""
        return self._parse_reader(SanitizingReader(stream, self.chunk_size))

    def parse_file(self, filepath: str | Path) -> EPGData:
        """
        Parse an XMLTV file, gzip-compressed or plain.

        Compression is detected from the file content, not its name.

        Args:
            filepath: Path to the XMLTV file

        Returns:
            Channels, sorted programs and recovered parse errors
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"EPG file not found: {filepath}")

        logger.info(f"Parsing EPG file: {filepath}")
        with open(filepath, "rb") as raw:
            return self.parse_stream(open_decompressed(raw))

    def _parse_reader(self, reader) -> EPGData:
        target = XMLTVTarget()
        parser = etree.XMLParser(
            target=target,
            recover=True,
            huge_tree=True,
            no_network=True,
        )
        target.parser = parser
        errors_seen = 0
        offset = 0
        line = 1
        fed = False

        while True:
            chunk = reader.read(self.chunk_size)
            if not chunk:
                break
            fed = True
            try:
                parser.feed(chunk)
            except etree.XMLSyntaxError as e:
                target.record_error(f"XML error at byte {offset}: {e}")
                target.reset()

            errors_seen = self._collect_errors(parser, target, errors_seen, chunk, offset, line)
            offset += len(chunk)
            line += chunk.count(b"\n")

        if fed:
            try:
                parser.close()
            except etree.XMLSyntaxError as e:
                target.record_error(f"XML error at byte {offset}: {e}")
            self._collect_errors(parser, target, errors_seen, b"", offset, line)

        result = target.finish()
        logger.info(
            f"Parsed {len(result.channels)} channels and {result.program_count()} programs"
        )
        if result.parse_error_count:
            logger.warning(f"Recovered from {result.error_summary()} while parsing EPG")
        return result

    @staticmethod
    def _collect_errors(parser, target: XMLTVTarget, seen: int,
                        chunk: bytes, offset: int, first_line: int) -> int:
        """Record tokenizer errors logged since the last call; returns the new total."""
        log = parser.feed_error_log
        if len(log) <= seen:
            return seen

        for entry in list(log)[seen:]:
            if entry.level < etree.ErrorLevels.ERROR:
                continue
            position = _byte_offset(chunk, offset, first_line, entry.line, entry.column)
            target.record_error(
                f"XML error at byte {position} (line {entry.line}, column {entry.column}): "
                f"{entry.message.strip()}"
            )
        return len(log)


def _byte_offset(chunk: bytes, offset: int, first_line: int, line: int, column: int) -> int:
    """Approximate absolute byte offset of a line/column inside the current chunk."""
    pos = 0
    for _ in range(max(line - first_line, 0)):
        newline = chunk.find(b"\n", pos)
        if newline == -1:
            return offset + len(chunk)
        pos = newline + 1
    return offset + min(pos + max(column - 1, 0), len(chunk))
