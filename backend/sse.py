"""
Incremental decoder for the relay's Server-Sent Events stream.

Feed it raw bytes as they arrive and it returns the events decoded so far.
A data line whose JSON does not parse is treated as a frame that was cut by
the transport: it stays in the buffer and is retried once more bytes arrive.
"""
import codecs
import json
from dataclasses import dataclass, field
from typing import Optional, Union

DATA_PREFIX = "data: "
DONE_PAYLOAD = "[DONE]"


@dataclass
class ContentDelta:
    content: str


@dataclass
class ToolActions:
    names: list[str] = field(default_factory=list)


@dataclass
class StreamDone:
    pass


StreamEvent = Union[ContentDelta, ToolActions, StreamDone]


def _data_payload(line: str) -> Optional[str]:
    """Return the payload of a data line, or None for comments, blanks and other fields."""
    if line.endswith("\r"):
        line = line[:-1]
    if line.startswith(":") or not line.strip():
        return None
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


def _frame_events(frame) -> list[StreamEvent]:
    if not isinstance(frame, dict):
        return []
    if "tool_actions" in frame:
        return [ToolActions(list(frame.get("tool_actions") or []))]
    try:
        content = frame["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return []
    if isinstance(content, str) and content:
        return [ContentDelta(content)]
    return []


class SSEDecoder:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._cursor = 0
        self.done = False

    @property
    def pending(self) -> str:
        """Text received but not yet decoded into events."""
        return self._buffer[self._cursor:]

    def feed(self, data: bytes) -> list[StreamEvent]:
        self._buffer = self.pending + self._decoder.decode(data)
        self._cursor = 0
        return self._drain()

    def flush(self) -> list[StreamEvent]:
        """
        Decode whatever is left once the body has ended, including a final line
        without a trailing newline. Lines that still do not parse are dropped.
        """
        remaining = self.pending + self._decoder.decode(b"", final=True)
        self._buffer = ""
        self._cursor = 0

        events = []
        for line in remaining.split("\n"):
            if self.done:
                break
            payload = _data_payload(line)
            if payload is None:
                continue
            if payload == DONE_PAYLOAD:
                self.done = True
                events.append(StreamDone())
                break
            try:
                frame = json.loads(payload)
            except ValueError:
                continue
            events.extend(_frame_events(frame))
        return events

    def _drain(self) -> list[StreamEvent]:
        events = []
        while not self.done:
            newline = self._buffer.find("\n", self._cursor)
            if newline == -1:
                break
            line_start = self._cursor
            line = self._buffer[line_start:newline]
            self._cursor = newline + 1

            payload = _data_payload(line)
            if payload is None:
                continue
            if payload == DONE_PAYLOAD:
                self.done = True
                events.append(StreamDone())
                break
            try:
                frame = json.loads(payload)
            except ValueError:
                # Push the whole line back and wait for the next read
                self._cursor = line_start
                break
            events.extend(_frame_events(frame))
        return events
