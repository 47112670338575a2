"""Classify platform pod logs into leveled entries.

The platform emits two log shapes: line-delimited JSON from newer
components and ANSI-colored log4j text from older ones, e.g.::

    2024-09-10 20:16:24 \x1b[33mWARN\x1b[m i.m.s.r.u.Loggers$Slf4JLogger(warn):299 - [273....

Continuation lines (wrapped messages, stack traces) carry no level of
their own and inherit the level of the line before them.
"""

from __future__ import annotations

import json
import re
from typing import Iterable, Iterator

from dpctl.models.logs import LogLine

LEGACY_LINE_RX = re.compile(
    r"^(?P<ts>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) "
    r"\x1b\[(?:1;)?\d+m(?P<level>[A-Z]+)\x1b\[m "
    r"(?P<msg>\S+ - .*)"
)

STACK_NOISE_PREFIXES = ("\tat ", "\t... ")


class LogScanner:
    """Sequential cursor over a log stream.

    ``stream`` is any iterable of ``bytes`` or ``str`` lines: a file, a
    list, or a urllib3 response from the kubernetes client.
    """

    def __init__(self, stream: Iterable[bytes | str]):
        self._lines: Iterator[bytes | str] = iter(stream)
        self._level = "DEBUG"
        self.line: LogLine | None = None

    def scan(self) -> bool:
        """Advance to the next entry. Returns False once the stream is exhausted."""
        for raw in self._lines:
            text = _decode(raw)
            if text.startswith(STACK_NOISE_PREFIXES):
                continue
            self.line = self._classify(text)
            self._level = self.line.level
            return True
        self.line = None
        return False

    def __iter__(self) -> Iterator[LogLine]:
        while self.scan():
            yield self.line

    def _classify(self, text: str) -> LogLine:
        structured = _parse_json(text)
        if structured is not None:
            return LogLine.from_json(structured, self._level)

        m = LEGACY_LINE_RX.match(text)
        if m:
            return LogLine(message=m.group("msg"), level=m.group("level"), timestamp=m.group("ts"))
        return LogLine(message=text, level=self._level)


def last_error_line(stream: Iterable[bytes | str]) -> LogLine | None:
    """Return the last ERROR entry in the stream, or None."""
    found = None
    for line in LogScanner(stream):
        if line.level == "ERROR":
            found = line
    return found


def last_error(stream: Iterable[bytes | str]) -> str:
    """Return the message of the last ERROR entry in the stream, or ''."""
    line = last_error_line(stream)
    return line.message if line else ""


def split_lines(text: str) -> list[str]:
    """Split a point-in-time log dump into physical lines."""
    return text.splitlines()


def _decode(raw: bytes | str) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.rstrip("\r\n")


def _parse_json(text: str) -> dict | None:
    if not text.lstrip().startswith("{"):
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
