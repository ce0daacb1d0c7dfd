#!/usr/bin/env python3
"""
Result Accumulator Module
Thread-safe, append-only storage for the active job's categorized records.
"""

import threading
import logging
from typing import Dict, List

from phone_scraper.core.models import FailedAttempt, MatchRecord, ResultSet

logger = logging.getLogger(__name__)


class ResultAccumulator:
    """Holds age-range matches, other-age matches and failed attempts.

    Every mutation and every snapshot takes the same lock, so a reader never
    sees half of a batch.
    """

    def __init__(self):
        self._age_range: List[MatchRecord] = []
        self._other_ages: List[MatchRecord] = []
        self._failed: List[FailedAttempt] = []
        self.lock = threading.Lock()

    def apply_batch(self, records: ResultSet) -> None:
        """Append each category of the batch, preserving arrival order."""
        with self.lock:
            self._age_range.extend(records.age_range)
            self._other_ages.extend(records.other_ages)
            self._failed.extend(records.failed)
        logger.debug(f"Applied batch: {records.counts()}")

    def replace_all(self, results: ResultSet) -> None:
        """Replace everything with a whole result set (legacy completion frames)."""
        with self.lock:
            self._age_range = list(results.age_range)
            self._other_ages = list(results.other_ages)
            self._failed = list(results.failed)
        logger.debug(f"Replaced results: {results.counts()}")

    def snapshot(self) -> ResultSet:
        with self.lock:
            return ResultSet(
                age_range=tuple(self._age_range),
                other_ages=tuple(self._other_ages),
                failed=tuple(self._failed),
            )

    def counts(self) -> Dict[str, int]:
        with self.lock:
            return {
                'age_range': len(self._age_range),
                'other_ages': len(self._other_ages),
                'failed': len(self._failed),
            }

    def reset(self) -> None:
        with self.lock:
            self._age_range = []
            self._other_ages = []
            self._failed = []
