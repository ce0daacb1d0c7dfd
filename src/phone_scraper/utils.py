import logging
from typing import List

logger = logging.getLogger(__name__)

def parse_phone_list(text: str) -> List[str]:
    """
    Split a block of text into base phone numbers.

    Args:
        text: Text with one phone number per line

    Returns:
        List[str]: Non-empty, stripped lines in their original order
    """
    return [line.strip() for line in text.split('\n') if line.strip()]

def load_numbers_file(path: str) -> List[str]:
    """
    Load base phone numbers from a file.

    Args:
        path: Path to a file with one number per line; '#' starts a comment line

    Returns:
        List[str]: Phone numbers found in the file

    Raises:
        OSError: If the file cannot be read
    """
    with open(path, 'r', encoding='utf-8') as f:
        numbers = [n for n in parse_phone_list(f.read()) if not n.startswith('#')]
    logger.info(f"Loaded {len(numbers)} base numbers from {path}")
    return numbers

def format_duration(seconds: int) -> str:
    """
    Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        str: Formatted duration string
    """
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        remaining_seconds = seconds % 60
        return f"{minutes}m {remaining_seconds}s"
    else:
        hours = seconds // 3600
        remaining_minutes = (seconds % 3600) // 60
        return f"{hours}h {remaining_minutes}m"

def format_percent(fraction: float) -> str:
    """Format a completion fraction (0..1) as a percentage."""
    return f"{fraction * 100:.0f}%"
