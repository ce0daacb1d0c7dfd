#!/usr/bin/env python3
"""
Phone Scraper Configuration Module
"""

import os

# Application Information
APP_NAME = "Phone Scraper"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Submit phone range lookups and collect age-matched results as they stream in"

# Collaborator endpoint
DEFAULT_API_URL = "http://localhost:3001/api/scrape"
API_URL = os.environ.get("PHONE_SCRAPER_API_URL") or DEFAULT_API_URL
API_KEY_ENV = "SCRAPER_API_KEY"

# Default job settings
DEFAULT_RANGE_SIZE = 600
DEFAULT_MIN_AGE = 78
DEFAULT_MAX_AGE = 96

# Request bounds (inclusive)
RANGE_SIZE_BOUNDS = (1, 1000)
AGE_BOUNDS = (0, 120)

# Stream settings
FRAME_PREFIX = "data: "
STREAM_ENCODING = "utf-8"
# Longest unterminated line kept in the carry-over buffer (characters)
MAX_FRAME_LENGTH = 8 * 1024 * 1024
# Only the connect phase is bounded; a stalled stream is never timed out
CONNECT_TIMEOUT = 10
POLL_INTERVAL = 0.5

# Export filenames per result category
EXPORT_FILENAMES = {
    'age_range': "age-{min_age}-to-{max_age}.csv",
    'other_ages': "other-ages.csv",
    'failed': "failed-requests.csv",
}

# Status messages
STATUS_MESSAGES = {
    'completed': '✅',
    'failed': '❌',
    'streaming': '📡',
    'warning': '⚠️',
}

# Error messages
ERROR_MESSAGES = {
    'no_numbers': "Please enter at least one phone number",
    'range_size': "Range size must be between {low} and {high}",
    'age_bounds': "{field} must be between {low} and {high}",
    'connection_error': "Could not connect to the scraper service",
    'http_error': "Scraper service responded with HTTP {status}",
    'stream_ended': "Stream ended before the job completed",
    'frame_too_large': "Stream frame exceeded {limit} characters without a line break",
    'cancelled': "Job cancelled",
    'superseded': "Job superseded by a newer submission",
    'interrupted': "⚠️  Operation interrupted by user.",
    'missing_api_key': "An API key is required (--api-key or ${env})",
}

# Success messages
SUCCESS_MESSAGES = {
    'job_complete': "🎯 Job completed: {processed}/{total} numbers processed",
    'saved': "💾 Saved {count} records to {path}",
    'numbers_loaded': "✅ Loaded {count} base numbers",
}
