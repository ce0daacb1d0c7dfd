#!/usr/bin/env python3
"""
Core models and stream event schemas for the phone scraper client.

Wire payloads use the collaborator's key names (``Name``, ``ageRange``,
``rateLimitHits`` ...); the ``*_from_dict`` helpers map them onto the frozen
dataclasses below and raise ``ValueError``/``TypeError``/``KeyError`` on
malformed input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from phone_scraper.config import AGE_BOUNDS, ERROR_MESSAGES, RANGE_SIZE_BOUNDS
from phone_scraper.core.exceptions import ValidationError

StatusCode = Union[str, int]


@dataclass(frozen=True)
class MatchRecord:
    name: str
    number: str
    age: int


@dataclass(frozen=True)
class FailedAttempt:
    number: str
    status_code: StatusCode
    reason: str


@dataclass(frozen=True)
class ResultSet:
    age_range: Tuple[MatchRecord, ...] = ()
    other_ages: Tuple[MatchRecord, ...] = ()
    failed: Tuple[FailedAttempt, ...] = ()

    def counts(self) -> Dict[str, int]:
        return {
            'age_range': len(self.age_range),
            'other_ages': len(self.other_ages),
            'failed': len(self.failed),
        }

    def is_empty(self) -> bool:
        return not (self.age_range or self.other_ages or self.failed)


@dataclass(frozen=True)
class JobProgress:
    processed: int = 0
    total: int = 0
    rate_limit_hits: int = 0
    # Reported only by legacy progress frames
    age_range_count: Optional[int] = None
    other_ages_count: Optional[int] = None
    failed_count: Optional[int] = None

    @property
    def fraction(self) -> float:
        """Completion fraction; 0.0 while the total is unknown."""
        if self.total <= 0:
            return 0.0
        return self.processed / self.total


@dataclass(frozen=True)
class JobRequest:
    """A lookup job. Immutable once constructed; validated on construction."""
    api_key: str
    base_numbers: Tuple[str, ...]
    range_size: int
    min_age: int
    max_age: int

    def __post_init__(self):
        object.__setattr__(self, 'base_numbers', tuple(self.base_numbers))
        if not self.base_numbers:
            raise ValidationError(ERROR_MESSAGES['no_numbers'])

        low, high = RANGE_SIZE_BOUNDS
        if not low <= self.range_size <= high:
            raise ValidationError(ERROR_MESSAGES['range_size'].format(low=low, high=high))

        low, high = AGE_BOUNDS
        for label, value in (("Min age", self.min_age), ("Max age", self.max_age)):
            if not low <= value <= high:
                raise ValidationError(ERROR_MESSAGES['age_bounds'].format(field=label, low=low, high=high))

    def to_payload(self) -> Dict[str, Any]:
        return {
            'apiKey': self.api_key,
            'phoneNumbers': list(self.base_numbers),
            'rangeSize': self.range_size,
            'minAge': self.min_age,
            'maxAge': self.max_age,
        }


class JobState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


@dataclass(frozen=True)
class JobStatus:
    job_id: int = 0
    state: JobState = JobState.IDLE
    error: Optional[str] = None
    request: Optional[JobRequest] = None


# --- Stream events (tagged union) ---

@dataclass(frozen=True)
class BatchEvent:
    records: ResultSet
    progress: JobProgress


@dataclass(frozen=True)
class ProgressEvent:
    progress: JobProgress


@dataclass(frozen=True)
class CompleteEvent:
    results: Optional[ResultSet] = None
    processed: Optional[int] = None
    rate_limit_hits: Optional[int] = None


@dataclass(frozen=True)
class ErrorEvent:
    message: str = ""


StreamEvent = Union[BatchEvent, ProgressEvent, CompleteEvent, ErrorEvent]
EVENT_TYPES = (BatchEvent, ProgressEvent, CompleteEvent, ErrorEvent)


# --- Wire mapping ---

def _records(items: Optional[Iterable[Any]], coerce) -> tuple:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise TypeError(f"Expected a list of records, got {type(items).__name__}")
    return tuple(coerce(item) for item in items)


def match_from_dict(obj: Dict[str, Any]) -> MatchRecord:
    return MatchRecord(
        name=str(obj.get("Name", "")),
        number=str(obj["Number"]),
        age=int(obj["Age"]),
    )


def failed_from_dict(obj: Dict[str, Any]) -> FailedAttempt:
    status = obj.get("StatusCode", "")
    if not isinstance(status, (str, int)) or isinstance(status, bool):
        status = str(status)
    return FailedAttempt(
        number=str(obj["Number"]),
        status_code=status,
        reason=str(obj.get("Reason", "")),
    )


def result_set_from_dict(obj: Optional[Dict[str, Any]]) -> ResultSet:
    """Map ``{ageRange, otherAges, failed}``; missing categories are empty."""
    if obj is None:
        return ResultSet()
    if not isinstance(obj, dict):
        raise TypeError(f"Expected a result object, got {type(obj).__name__}")
    return ResultSet(
        age_range=_records(obj.get("ageRange"), match_from_dict),
        other_ages=_records(obj.get("otherAges"), match_from_dict),
        failed=_records(obj.get("failed"), failed_from_dict),
    )


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def progress_from_dict(obj: Dict[str, Any]) -> JobProgress:
    if not isinstance(obj, dict):
        raise TypeError(f"Expected a progress object, got {type(obj).__name__}")
    return JobProgress(
        processed=int(obj.get("processed") or 0),
        total=int(obj.get("total") or 0),
        rate_limit_hits=int(obj.get("rateLimitHits") or 0),
        age_range_count=_optional_int(obj.get("ageRangeCount")),
        other_ages_count=_optional_int(obj.get("otherAgesCount")),
        failed_count=_optional_int(obj.get("failedCount")),
    )
