#!/usr/bin/env python3
"""
Phone Scraper CLI - Command Line Interface
Submits a range lookup job and follows its result stream with rich terminal feedback.
"""

import argparse
import os
import sys
import logging
import time
from typing import Dict, List, Optional

from phone_scraper.config import (
    APP_NAME, APP_VERSION, APP_DESCRIPTION, API_KEY_ENV, API_URL, DEFAULT_RANGE_SIZE,
    DEFAULT_MIN_AGE, DEFAULT_MAX_AGE, ERROR_MESSAGES, SUCCESS_MESSAGES, STATUS_MESSAGES, POLL_INTERVAL
)
from phone_scraper.core.exceptions import ValidationError
from phone_scraper.core.models import JobProgress, JobRequest, JobState, ResultSet
from phone_scraper.operations.job_controller import JobController
from phone_scraper.operations.results_handler import ResultsHandler
from phone_scraper.utils import format_duration, format_percent, load_numbers_file, parse_phone_list
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.panel import Panel
from rich import box
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn


console = Console()

CATEGORY_LABELS = {
    'age_range': "Target Age",
    'other_ages': "Other Ages",
    'failed': "Failed",
}


class ConsoleUI:
    """Rich-based console UI for the CLI."""

    @staticmethod
    def print_banner():
        console.print(Panel.fit(f"[bold cyan]{APP_NAME}[/] CLI v{APP_VERSION}\n[dim]{APP_DESCRIPTION}[/]", border_style="cyan"))

    @staticmethod
    def print_request(request: JobRequest, api_url: str):
        table = Table(title="Job", box=box.SIMPLE_HEAD, show_header=False, expand=False)
        table.add_column("Setting", style="bold")
        table.add_column("Value")
        table.add_row("Service", api_url)
        table.add_row("Base numbers", ", ".join(request.base_numbers))
        table.add_row("Range size", str(request.range_size))
        table.add_row("Target ages", f"{request.min_age}-{request.max_age}")
        table.add_row("Lookups", f"{len(request.base_numbers) * request.range_size:,}")
        console.print(table)

    @staticmethod
    def print_summary(request: JobRequest, progress: JobProgress, counts: Dict[str, int],
                      state: JobState, error: Optional[str], elapsed_time: int):
        if state == JobState.COMPLETED:
            title, border = f"{STATUS_MESSAGES['completed']} Completed", "green"
        else:
            title, border = f"{STATUS_MESSAGES['failed']} Failed", "red"
        lines = [
            f"Processed: [bold]{progress.processed:,}[/] / {progress.total:,} ({format_percent(progress.fraction)})"
            f" | Rate-limit hits: [bold]{progress.rate_limit_hits}[/] | Elapsed: [bold]{format_duration(elapsed_time)}[/]"
        ]
        if error:
            lines.append(f"[red]{escape(error)}[/]")
        console.print(Panel.fit("\n".join(lines), title=title, border_style=border))

        table = Table(title="Results", box=box.SIMPLE_HEAD)
        table.add_column("Category", style="bold")
        table.add_column("Records", justify="right")
        for key, label in CATEGORY_LABELS.items():
            if key == 'age_range':
                label = f"Age {request.min_age}-{request.max_age}"
            table.add_row(label, str(counts.get(key, 0)))
        console.print(table)


def _category_counts(results: ResultSet, progress: JobProgress) -> Dict[str, int]:
    """Accumulated counts, falling back to counters from legacy progress frames."""
    counts = results.counts()
    reported = {
        'age_range': progress.age_range_count,
        'other_ages': progress.other_ages_count,
        'failed': progress.failed_count,
    }
    for key, value in reported.items():
        if value is not None and not counts[key]:
            counts[key] = value
    return counts


def follow_job(controller: JobController, request: JobRequest) -> None:
    """Start the job and render a live progress bar until it ends."""
    controller.start(request)

    # Temporarily suppress INFO/DEBUG logs so they don't break the live progress area
    prev_disabled = logging.root.manager.disable
    logging.disable(logging.INFO)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            transient=True,
            refresh_per_second=10,
            console=console,
            disable=not console.is_terminal,
        ) as progress_bar:
            task = progress_bar.add_task("Waiting for scraper service", total=None)
            while True:
                finished = controller.wait(POLL_INTERVAL)
                progress = controller.progress()
                counts = _category_counts(controller.snapshot(), progress)
                description = (
                    f"{STATUS_MESSAGES['streaming']} Target: {counts['age_range']} • "
                    f"Other: {counts['other_ages']} • Failed: {counts['failed']} • "
                    f"Rate limited: {progress.rate_limit_hits}"
                )
                progress_bar.update(task, completed=progress.processed,
                                    total=progress.total or None, description=description)
                if finished:
                    break
    finally:
        logging.disable(prev_disabled)


def setup_logging(verbose: bool = False):
    """Setup logging configuration.
    Default to WARNING to avoid flooding the live progress. Use --verbose for DEBUG.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    # Quiet noisy libraries unless verbose
    for name in ("urllib3", "requests"):
        logging.getLogger(name).setLevel(logging.WARNING if not verbose else logging.INFO)


def collect_numbers(args) -> List[str]:
    """Gather base numbers from --numbers and --numbers-file, keeping order."""
    numbers: List[str] = []
    for value in args.numbers or []:
        numbers.extend(parse_phone_list(value))
    if args.numbers_file:
        numbers.extend(load_numbers_file(args.numbers_file))
    return numbers


def build_request(args) -> JobRequest:
    """Build a validated JobRequest from command line arguments."""
    api_key = args.api_key or os.environ.get(API_KEY_ENV, "")
    if not api_key:
        raise ValidationError(ERROR_MESSAGES['missing_api_key'].format(env=API_KEY_ENV))
    return JobRequest(
        api_key=api_key,
        base_numbers=tuple(collect_numbers(args)),
        range_size=args.range_size,
        min_age=args.min_age,
        max_age=args.max_age,
    )


def main(argv: Optional[List[str]] = None):
    """Main function."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        request = build_request(args)
    except ValidationError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        return 2
    except OSError as e:
        console.print(f"[red]Could not read numbers file:[/] {escape(str(e))}")
        return 2

    api_url = args.url or API_URL
    if not args.no_banner:
        ConsoleUI.print_banner()
        ConsoleUI.print_request(request, api_url)
    console.print(SUCCESS_MESSAGES['numbers_loaded'].format(count=len(request.base_numbers)))

    controller = JobController(api_url=api_url)
    start_time = time.time()

    try:
        follow_job(controller, request)
    except KeyboardInterrupt:
        controller.cancel()
        console.print(f"\n{ERROR_MESSAGES['interrupted']}")
        return 130

    status = controller.status()
    results = controller.snapshot()
    progress = controller.progress()
    elapsed_time = int(time.time() - start_time)
    if status.state == JobState.COMPLETED:
        console.print(SUCCESS_MESSAGES['job_complete'].format(processed=progress.processed, total=progress.total))
    ConsoleUI.print_summary(request, progress, _category_counts(results, progress),
                            status.state, status.error, elapsed_time)

    # Whatever arrived before a failure is still worth keeping
    if not results.is_empty():
        if status.state != JobState.COMPLETED:
            console.print(f"{STATUS_MESSAGES['warning']}  Saving partial results")
        written = ResultsHandler().save_exports(
            results, request, args.output_dir, overwrite=args.overwrite
        )
        counts = results.counts()
        for category, path in written.items():
            console.print(SUCCESS_MESSAGES['saved'].format(count=counts[category], path=path))
    else:
        console.print("No records to save.")

    return 0 if status.state == JobState.COMPLETED else 1


def create_argument_parser():
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        description=f"{APP_NAME} CLI - {APP_DESCRIPTION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Scan 600 numbers after each base number, targeting ages 78-96
  %(prog)s --api-key KEY --numbers 7609993322 5615827060

  # Read base numbers from a file and use a custom age window
  %(prog)s --numbers-file numbers.txt --min-age 60 --max-age 70

  # Point at a different scraper service
  %(prog)s --numbers 9032451149 --url http://scraper.internal:3001/api/scrape

The API key may also be given through the {API_KEY_ENV} environment variable.
        """
    )

    parser.add_argument("--api-key", "-k", help=f"ScraperAPI key (default: ${API_KEY_ENV})")
    parser.add_argument("--numbers", "-n", nargs='+', help="Base phone numbers without dashes")
    parser.add_argument("--numbers-file", "-f", help="File with one base phone number per line")
    parser.add_argument("--range-size", "-r", type=int, default=DEFAULT_RANGE_SIZE,
                        help=f"Consecutive numbers to scan per base number (default: {DEFAULT_RANGE_SIZE})")
    parser.add_argument("--min-age", type=int, default=DEFAULT_MIN_AGE, help=f"Minimum target age (default: {DEFAULT_MIN_AGE})")
    parser.add_argument("--max-age", type=int, default=DEFAULT_MAX_AGE, help=f"Maximum target age (default: {DEFAULT_MAX_AGE})")
    parser.add_argument("--url", help=f"Scraper service endpoint (default: {API_URL})")
    parser.add_argument("--output-dir", "-o", default=".", help="Directory for CSV exports (default: current directory)")
    parser.add_argument("--overwrite", action="store_true", help="Overwrite existing CSV files instead of adding a suffix")
    parser.add_argument("--no-banner", action="store_true", help="Don't show application banner")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} CLI v{APP_VERSION}")

    return parser


if __name__ == "__main__":
    sys.exit(main())
