#!/usr/bin/env python3
"""
Event Dispatcher Module
Parses ``data: {...}`` frames into typed events and routes them to handlers.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional, Type

from phone_scraper.config import FRAME_PREFIX
from phone_scraper.core.exceptions import FrameParseError
from phone_scraper.core.models import (
    EVENT_TYPES,
    BatchEvent,
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    StreamEvent,
    progress_from_dict,
    result_set_from_dict,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


def _parse_batch(payload: Dict[str, Any]) -> BatchEvent:
    return BatchEvent(
        records=result_set_from_dict(payload.get("data")),
        progress=progress_from_dict(payload.get("progress") or {}),
    )


def _parse_progress(payload: Dict[str, Any]) -> ProgressEvent:
    return ProgressEvent(progress=progress_from_dict(payload))


def _parse_complete(payload: Dict[str, Any]) -> CompleteEvent:
    # Legacy frames carry the whole result set; incremental ones only counters
    if payload.get("results") is not None:
        return CompleteEvent(results=result_set_from_dict(payload["results"]))
    processed = payload.get("processed")
    hits = payload.get("rateLimitHits")
    return CompleteEvent(
        processed=None if processed is None else int(processed),
        rate_limit_hits=None if hits is None else int(hits),
    )


def _parse_error(payload: Dict[str, Any]) -> ErrorEvent:
    return ErrorEvent(message=str(payload.get("message", "")))


EVENT_PARSERS: Dict[str, Callable[[Dict[str, Any]], StreamEvent]] = {
    "batch": _parse_batch,
    "progress": _parse_progress,
    "complete": _parse_complete,
    "error": _parse_error,
}


def parse_event(line: str) -> Optional[StreamEvent]:
    """Parse one line of the stream.

    Returns None for lines without the frame prefix and for unknown event
    types. Raises FrameParseError when a frame's payload is malformed.
    """
    if not line.startswith(FRAME_PREFIX):
        return None

    try:
        payload = json.loads(line[len(FRAME_PREFIX):])
    except (ValueError, RecursionError) as e:
        raise FrameParseError(f"Invalid JSON in frame: {e}", line) from e

    if not isinstance(payload, dict):
        raise FrameParseError(f"Frame payload is not an object: {type(payload).__name__}", line)

    kind = payload.get("type")
    parser = EVENT_PARSERS.get(kind) if isinstance(kind, str) else None
    if parser is None:
        logger.debug(f"Ignoring frame with unknown type: {kind!r}")
        return None

    try:
        return parser(payload)
    except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as e:
        raise FrameParseError(f"Malformed {kind} frame: {e}", line) from e


class EventDispatcher:
    """Routes parsed events to one handler per event type, strictly in order."""

    def __init__(self, handlers: Optional[Dict[Type, Handler]] = None):
        self._handlers: Dict[Type, Handler] = {}
        self.skipped = 0
        for event_type, handler in (handlers or {}).items():
            self.register(event_type, handler)

    def register(self, event_type: Type, handler: Handler) -> None:
        if event_type not in EVENT_TYPES:
            raise TypeError(f"Not a stream event type: {event_type!r}")
        self._handlers[event_type] = handler

    def dispatch(self, line: str) -> Optional[StreamEvent]:
        """Parse and apply one line. Returns the applied event, if any."""
        try:
            event = parse_event(line)
        except FrameParseError as e:
            self.skipped += 1
            logger.warning(f"Skipping malformed frame: {e} ({e.line[:80]!r})")
            return None

        if event is None:
            return None

        handler = self._handlers.get(type(event))
        if handler is None:
            raise LookupError(f"No handler registered for {type(event).__name__}")
        handler(event)
        return event
