"""
Incremental parser for the Gemini CLI ``stream-json`` output.

The CLI writes one JSON event per line on stdout, but it can also print
plain log lines there. Lines that are not JSON objects with a known event
type are skipped; parsing always continues with the next line.
"""

import json

from pydantic import ValidationError

from bridge.models.internal import StreamEvent, stream_event_adapter
from bridge.utils.logging import get_logger

logger = get_logger(__name__)


def parse_event_line(line: str) -> StreamEvent | None:
    """
    Decode one line of CLI output.

    Args:
        line: A complete output line, without its newline

    Returns:
        The decoded event, or None for blank, non-JSON and unrecognised lines
    """
    line = line.strip()
    if not line:
        return None

    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Skipping non-JSON output line", extra={"line": line[:200]})
        return None

    if not isinstance(data, dict):
        return None

    try:
        return stream_event_adapter.validate_python(data)
    except ValidationError:
        logger.debug("Skipping unrecognised event", extra={"event_type": data.get("type")})
        return None


class EventStreamParser:
    """
    Splits stdout bytes into lines and decodes each complete line.

    The trailing partial line is buffered as bytes until its newline arrives,
    so a multi-byte character split across reads decodes correctly and the
    decoded event sequence does not depend on how the output was chunked.
    One parser serves one request.
    """

    def __init__(self) -> None:
        self._pending = b""

    def feed(self, data: bytes) -> list[StreamEvent]:
        """
        Consume a chunk of stdout.

        Args:
            data: Bytes read from the process, any size

        Returns:
            Events decoded from the lines completed by this chunk, in order
        """
        *lines, self._pending = (self._pending + data).split(b"\n")
        return self._decode(lines)

    def flush(self) -> list[StreamEvent]:
        """Decode a final line that was not newline-terminated."""
        remainder, self._pending = self._pending, b""
        return self._decode([remainder])

    @staticmethod
    def _decode(lines: list[bytes]) -> list[StreamEvent]:
        events = []
        for raw in lines:
            event = parse_event_line(raw.decode("utf-8", errors="replace"))
            if event is not None:
                events.append(event)
        return events
