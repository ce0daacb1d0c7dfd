#!/usr/bin/env python3
"""
Error types raised by the streaming client.
"""

from phone_scraper.config import ERROR_MESSAGES


class ScraperError(Exception):
    """Base class for all phone scraper errors."""


class ValidationError(ScraperError):
    """Job request rejected locally, before any network activity."""


class TransportError(ScraperError):
    """Connection failure, HTTP error status or premature end of stream."""


class FrameTooLargeError(TransportError):
    """Carry-over buffer grew past the frame length cap without a terminator."""

    def __init__(self, limit: int):
        super().__init__(ERROR_MESSAGES['frame_too_large'].format(limit=limit))
        self.limit = limit


class FrameParseError(ScraperError):
    """A single frame could not be parsed; the stream continues."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class ServerError(ScraperError):
    """The collaborator reported an error event."""
