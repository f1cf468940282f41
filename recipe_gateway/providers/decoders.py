"""Incremental decoders that turn a byte stream into protocol frames.

Network reads can split a frame anywhere, including inside a multi-byte UTF-8
sequence, so every decoder keeps a carry-over buffer between ``feed`` calls and
only emits frames it has seen in full. ``flush`` drains whatever is left once
the stream ends.
"""

import codecs
import logging
from typing import List, Union

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class StreamDecoder:
    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: Union[bytes, str]) -> List[str]:
        text = data if isinstance(data, str) else self._utf8.decode(data)
        return self._frames(text) if text else []

    def flush(self) -> List[str]:
        tail = self._utf8.decode(b"", final=True)
        frames = self._frames(tail) if tail else []
        return frames + self._drain()

    def _frames(self, text: str) -> List[str]:
        raise NotImplementedError

    def _drain(self) -> List[str]:
        return []


class LineDecoder(StreamDecoder):
    """Newline-delimited frames (NDJSON, plain token lines)."""

    def __init__(self) -> None:
        super().__init__()
        self._buffer = ""

    def _frames(self, text: str) -> List[str]:
        self._buffer += text
        lines = self._buffer.split("\n")
        # last element is an incomplete line (or "" after a trailing newline)
        self._buffer = lines.pop()
        return [frame for frame in (self._accept(line) for line in lines) if frame is not None]

    def _drain(self) -> List[str]:
        rest, self._buffer = self._buffer, ""
        frame = self._accept(rest)
        return [frame] if frame is not None else []

    def _accept(self, line: str):
        line = line.strip()
        return line or None


class SSEDecoder(LineDecoder):
    """Server-sent events: yields the payload of each ``data:`` line.

    ``event:``/``id:`` lines and comments are dropped, as is the ``[DONE]`` sentinel.
    """

    def _accept(self, line: str):
        line = line.strip()
        if not line.startswith("data:"):
            return None
        payload = line[5:].strip()
        if not payload or payload == DONE_SENTINEL:
            return None
        return payload


class JSONArrayDecoder(StreamDecoder):
    """A top-level JSON array emitted element by element.

    Leading ``[``, separating commas and the closing ``]`` live outside any
    element and are skipped; each complete ``{...}`` element becomes one frame.
    Also copes with newline-separated objects.
    """

    def __init__(self) -> None:
        super().__init__()
        self._element: List[str] = []
        self._depth = 0
        self._in_string = False
        self._escape = False

    def _frames(self, text: str) -> List[str]:
        frames: List[str] = []
        for ch in text:
            if self._depth == 0:
                if ch == "{":
                    self._depth = 1
                    self._element = [ch]
                continue
            self._element.append(ch)
            if self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
                continue
            if ch == '"':
                self._in_string = True
            elif ch in "{[":
                self._depth += 1
            elif ch in "}]":
                self._depth -= 1
                if self._depth == 0:
                    frames.append("".join(self._element))
                    self._element = []
        return frames

    def _drain(self) -> List[str]:
        if self._element:
            logger.debug("dropping incomplete JSON element (%d chars)", len(self._element))
        self._element = []
        self._depth = 0
        self._in_string = False
        self._escape = False
        return []
