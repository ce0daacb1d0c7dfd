#!/usr/bin/env python3
"""
Results Handler Module
Writes result categories to CSV files on disk.
"""

import os
import logging
from typing import Dict

from phone_scraper.core.models import JobRequest, ResultSet
from phone_scraper.operations.csv_encoder import CATEGORIES, encode_category, export_filename

logger = logging.getLogger(__name__)


class ResultsHandler:
    """Saves a result snapshot as one CSV file per category."""

    def save_exports(self, results: ResultSet, request: JobRequest, out_dir: str, *,
                     include_empty: bool = False, overwrite: bool = False) -> Dict[str, str]:
        """Write each category under its conventional filename.

        Empty categories are skipped unless include_empty. Existing files get
        a numbered suffix unless overwrite. Returns {category: path} for the
        files that were written.
        """
        os.makedirs(out_dir or '.', exist_ok=True)
        counts = results.counts()

        written: Dict[str, str] = {}
        for category in CATEGORIES:
            if not counts[category] and not include_empty:
                continue

            filepath = os.path.join(out_dir, export_filename(category, request))
            try:
                if os.path.exists(filepath) and not overwrite:
                    filepath = self._generate_new_filename(filepath)
                with open(filepath, 'w', encoding='utf-8', newline='') as f:
                    f.write(encode_category(results, category))
            except (OSError, ValueError) as e:
                logger.error(f"Error saving {category} results to {filepath}: {e}")
                continue

            logger.info(f"Saved {counts[category]} {category} records to {filepath}")
            written[category] = filepath

        return written

    def _generate_new_filename(self, original_filepath: str) -> str:
        """Generate a new filename by adding a number suffix."""
        base_path, ext = os.path.splitext(original_filepath)
        counter = 1

        while True:
            new_path = f"{base_path}_{counter}{ext}"
            if not os.path.exists(new_path):
                return new_path
            counter += 1

            if counter > 1000:
                raise ValueError("Could not generate unique filename after 1000 attempts")
