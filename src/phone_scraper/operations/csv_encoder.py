#!/usr/bin/env python3
"""
CSV Encoder Module
Renders result categories to CSV text.

Quote characters inside values are written as-is (no escaping). Values are
numeric phone strings and short collaborator-supplied names and reasons.
"""

from typing import Sequence

from phone_scraper.config import EXPORT_FILENAMES
from phone_scraper.core.models import FailedAttempt, JobRequest, MatchRecord, ResultSet

MATCH_HEADER = "Name,Number,Age"
FAILED_HEADER = "Number,StatusCode,Reason"

CATEGORIES = ('age_range', 'other_ages', 'failed')


def encode_matches(records: Sequence[MatchRecord]) -> str:
    rows = [f'"{r.name}","{r.number}",{r.age}' for r in records]
    return MATCH_HEADER + "\n" + "\n".join(rows)


def encode_failed(records: Sequence[FailedAttempt]) -> str:
    rows = [f'"{r.number}","{r.status_code}","{r.reason}"' for r in records]
    return FAILED_HEADER + "\n" + "\n".join(rows)


def encode_category(results: ResultSet, category: str) -> str:
    """Encode one category of a result set by name."""
    if category == 'failed':
        return encode_failed(results.failed)
    if category in ('age_range', 'other_ages'):
        return encode_matches(getattr(results, category))
    raise ValueError(f"Unknown result category: {category}")


def export_filename(category: str, request: JobRequest) -> str:
    """Conventional filename for a category; target-age files embed the age window."""
    try:
        pattern = EXPORT_FILENAMES[category]
    except KeyError:
        raise ValueError(f"Unknown result category: {category}") from None
    return pattern.format(min_age=request.min_age, max_age=request.max_age)
