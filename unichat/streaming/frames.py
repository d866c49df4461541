"""
unichat - Frame Reader

Turns a raw SSE byte stream into discrete frames.

Two framings are supported:
- DATA mode: one frame per `data:` line (OpenAI Chat Completions,
  Anthropic, Google `alt=sse`).
- EVENT mode: `event:` / `data:` pairs terminated by a blank line
  (OpenAI Responses API).

The reader buffers incomplete lines and partially decoded UTF-8 across
network reads, so a multi-byte character or a JSON payload split
mid-token is never emitted early. It never parses JSON.
"""

import codecs
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, List, Optional


DONE_SENTINEL = "[DONE]"


class FrameMode(str, Enum):
    """How lines are grouped into frames."""
    DATA = "data"
    EVENT = "event"


@dataclass
class Frame:
    """One decoded event payload."""
    data: str
    event: Optional[str] = None


def _field_value(line: str, prefix: str) -> str:
    value = line[len(prefix):]
    # SSE allows exactly one optional space after the colon
    if value.startswith(" "):
        value = value[1:]
    return value


class FrameReader:
    """
    Incremental SSE framer.

    Usage:
        reader = FrameReader(FrameMode.DATA)
        for chunk in chunks:
            for frame in reader.feed(chunk):
                ...
        for frame in reader.flush():
            ...

    Once the [DONE] sentinel is seen, `done` is set and every further
    call returns no frames.
    """

    def __init__(self, mode: FrameMode = FrameMode.DATA):
        self.mode = mode
        self.done = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

        # EVENT mode state, survives across reads
        self._event: Optional[str] = None
        self._data_lines: List[str] = []

    def feed(self, chunk: bytes) -> List[Frame]:
        """Consume one network read and return the frames it completed."""
        if self.done:
            return []

        self._buffer += self._decoder.decode(chunk)
        frames: List[Frame] = []

        while not self.done:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            self._handle_line(line.rstrip("\r"), frames)

        return frames

    def flush(self) -> List[Frame]:
        """Emit whatever the stream left unterminated."""
        if self.done:
            return []

        self._buffer += self._decoder.decode(b"", final=True)
        frames: List[Frame] = []

        if self._buffer:
            line, self._buffer = self._buffer, ""
            self._handle_line(line.rstrip("\r"), frames)

        if not self.done and self.mode == FrameMode.EVENT:
            self._emit_event(frames)

        self.done = True
        return frames

    # ============================================================
    # Line handling
    # ============================================================

    def _handle_line(self, line: str, frames: List[Frame]):
        if self.mode == FrameMode.DATA:
            self._handle_data_line(line, frames)
        else:
            self._handle_event_line(line, frames)

    def _handle_data_line(self, line: str, frames: List[Frame]):
        if not line or line.startswith(":"):
            return
        if not line.startswith("data:"):
            return

        payload = _field_value(line, "data:")
        if payload.strip() == DONE_SENTINEL:
            self.done = True
            return

        frames.append(Frame(data=payload))

    def _handle_event_line(self, line: str, frames: List[Frame]):
        if not line:
            self._emit_event(frames)
            return
        if line.startswith(":"):
            return

        if line.startswith("event:"):
            self._event = _field_value(line, "event:").strip()
        elif line.startswith("data:"):
            payload = _field_value(line, "data:")
            if payload.strip() == DONE_SENTINEL:
                self.done = True
                return
            self._data_lines.append(payload)

    def _emit_event(self, frames: List[Frame]):
        if self._data_lines:
            frames.append(Frame(data="\n".join(self._data_lines), event=self._event))
        self._event = None
        self._data_lines = []


async def read_frames(
    chunks: AsyncIterator[bytes],
    mode: FrameMode = FrameMode.DATA
) -> AsyncIterator[Frame]:
    """Lazily yield frames from an async byte iterator."""
    reader = FrameReader(mode)

    async for chunk in chunks:
        for frame in reader.feed(chunk):
            yield frame
        if reader.done:
            return

    for frame in reader.flush():
        yield frame
