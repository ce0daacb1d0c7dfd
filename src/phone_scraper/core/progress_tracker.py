#!/usr/bin/env python3
"""
Progress Tracker Module
Holds the job counters reported by the collaborator.
"""

import threading
import logging
from dataclasses import replace
from typing import Optional

from phone_scraper.core.models import JobProgress

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Latest processed/total/rate-limit counters for the active job.

    Reported values are running totals, not deltas. ``processed`` and
    ``rate_limit_hits`` never move backwards and ``total`` is fixed once it
    is first seen non-zero.
    """

    def __init__(self):
        self._progress = JobProgress()
        self.lock = threading.Lock()

    def apply_progress(self, progress: JobProgress) -> None:
        with self.lock:
            current = self._progress
            total = current.total
            if total == 0:
                total = progress.total
            elif progress.total and progress.total != total:
                logger.warning(f"Ignoring changed total {progress.total} (fixed at {total})")

            self._progress = JobProgress(
                processed=self._non_decreasing("processed", current.processed, progress.processed),
                total=total,
                rate_limit_hits=self._non_decreasing("rate_limit_hits", current.rate_limit_hits,
                                                     progress.rate_limit_hits),
                age_range_count=_latest(progress.age_range_count, current.age_range_count),
                other_ages_count=_latest(progress.other_ages_count, current.other_ages_count),
                failed_count=_latest(progress.failed_count, current.failed_count),
            )
            self._check_bounds()

    def apply_completion(self, processed: Optional[int] = None, rate_limit_hits: Optional[int] = None) -> None:
        """Apply the final counters carried by an incremental completion frame."""
        with self.lock:
            current = self._progress
            if processed is not None:
                current = replace(current, processed=self._non_decreasing("processed", current.processed, processed))
            if rate_limit_hits is not None:
                current = replace(current, rate_limit_hits=self._non_decreasing(
                    "rate_limit_hits", current.rate_limit_hits, rate_limit_hits))
            self._progress = current
            self._check_bounds()

    def current(self) -> JobProgress:
        with self.lock:
            return self._progress

    def reset(self) -> None:
        with self.lock:
            self._progress = JobProgress()

    @staticmethod
    def _non_decreasing(name: str, previous: int, reported: int) -> int:
        if reported < previous:
            logger.warning(f"Ignoring decreasing {name}: {reported} < {previous}")
            return previous
        return reported

    def _check_bounds(self):
        p = self._progress
        if p.total and p.processed > p.total:
            logger.warning(f"Processed count {p.processed} exceeds total {p.total}")


def _latest(reported: Optional[int], previous: Optional[int]) -> Optional[int]:
    return previous if reported is None else reported
