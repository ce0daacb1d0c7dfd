#!/usr/bin/env python3
"""
Stream Framer Module
Turns raw transport chunks into complete, newline-terminated text lines.
"""

import codecs
import logging
from typing import Iterable, Iterator, List

from phone_scraper.config import MAX_FRAME_LENGTH, STREAM_ENCODING
from phone_scraper.core.exceptions import FrameTooLargeError

logger = logging.getLogger(__name__)


class StreamFramer:
    """Incremental line framer.

    A multi-byte character split across two chunks stays inside the
    incremental decoder until its last byte arrives, so it is never corrupted
    or broken into two lines. Text after the last ``\\n`` is carried over to
    the next ``feed`` call and dropped by ``close`` if no terminator follows.
    """

    def __init__(self, encoding: str = STREAM_ENCODING, max_line_length: int = MAX_FRAME_LENGTH):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self.max_line_length = max_line_length

    @property
    def pending(self) -> int:
        """Number of carried-over characters awaiting a terminator."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> List[str]:
        """Decode one chunk and return the lines it completed."""
        if not chunk:
            return []
        self._buffer += self._decoder.decode(chunk)
        parts = self._buffer.split("\n")
        self._buffer = parts.pop()

        if len(self._buffer) > self.max_line_length:
            self._buffer = ""
            raise FrameTooLargeError(self.max_line_length)

        return [part[:-1] if part.endswith("\r") else part for part in parts]

    def close(self) -> None:
        """Flush the decoder at end of stream; an unterminated tail is discarded."""
        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer:
            logger.debug(f"Discarding {len(self._buffer)} unterminated characters at end of stream")
        self._buffer = ""
        self._decoder.reset()

    def iter_lines(self, chunks: Iterable[bytes]) -> Iterator[str]:
        """Yield complete lines from an iterable of chunks, one chunk at a time."""
        for chunk in chunks:
            for line in self.feed(chunk):
                yield line
        self.close()
