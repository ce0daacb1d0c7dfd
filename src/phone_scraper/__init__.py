"""Streaming client for phone range age lookups."""

from phone_scraper.config import APP_VERSION as __version__

__all__ = ["__version__"]
