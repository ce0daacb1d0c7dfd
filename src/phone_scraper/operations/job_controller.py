#!/usr/bin/env python3
"""
Job Controller Module
Owns the lifecycle of one scrape job: submits the request, consumes the
event stream and keeps the accumulator and progress tracker up to date.
"""

import threading
import logging
from dataclasses import replace
from typing import Optional

import requests

from phone_scraper.config import API_URL, APP_NAME, APP_VERSION, CONNECT_TIMEOUT, ERROR_MESSAGES
from phone_scraper.core.accumulator import ResultAccumulator
from phone_scraper.core.event_dispatcher import EventDispatcher
from phone_scraper.core.exceptions import ServerError, TransportError
from phone_scraper.core.models import (
    BatchEvent,
    CompleteEvent,
    ErrorEvent,
    JobProgress,
    JobRequest,
    JobState,
    JobStatus,
    ProgressEvent,
    ResultSet,
)
from phone_scraper.core.progress_tracker import ProgressTracker
from phone_scraper.core.stream_framer import StreamFramer

logger = logging.getLogger(__name__)


class JobController:
    """Runs one job at a time; a new submission always replaces the current one.

    State: IDLE -> SUBMITTING -> STREAMING -> COMPLETED | FAILED. Every state
    change and every applied event checks the job id under ``_lock``, so a
    superseded stream can never touch the new job's results.
    """

    def __init__(self, api_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.api_url = api_url or API_URL
        self.session = session or requests.Session()
        self._setup_session()

        self.accumulator = ResultAccumulator()
        self.tracker = ProgressTracker()

        self._lock = threading.RLock()
        self._status = JobStatus()
        self._response = None
        self._worker: Optional[threading.Thread] = None

    def _setup_session(self):
        self.session.headers.update(
            {
                "User-Agent": f"{APP_NAME}/{APP_VERSION}",
                "Accept": "text/event-stream, application/json",
                "Cache-Control": "no-cache",
            }
        )

    # --- Public API ---

    def submit(self, request: JobRequest) -> JobStatus:
        """Run a job in the calling thread and return its final status."""
        job_id = self._begin(request)
        self._run(job_id, request)
        return self.status()

    def start(self, request: JobRequest) -> int:
        """Run a job on a background worker thread. Returns the job id."""
        job_id = self._begin(request)
        worker = threading.Thread(
            target=self._run,
            args=(job_id, request),
            name=f"scrape-job-{job_id}",
        )
        worker.daemon = True
        with self._lock:
            self._worker = worker
        worker.start()
        return job_id

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the background worker. Returns True once it has finished."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def cancel(self) -> None:
        """Abandon the active job by closing its transport."""
        with self._lock:
            response, self._response = self._response, None
            state = self._status.state
            if state not in (JobState.IDLE, JobState.COMPLETED, JobState.FAILED):
                self._status = replace(self._status, state=JobState.FAILED, error=ERROR_MESSAGES['cancelled'])
                logger.info(f"Job {self._status.job_id} cancelled")
        if response is not None:
            response.close()

    def status(self) -> JobStatus:
        with self._lock:
            return self._status

    def snapshot(self) -> ResultSet:
        return self.accumulator.snapshot()

    def progress(self) -> JobProgress:
        return self.tracker.current()

    # --- Lifecycle ---

    def _begin(self, request: JobRequest) -> int:
        if not isinstance(request, JobRequest):
            raise TypeError(f"Expected a JobRequest, got {type(request).__name__}")

        with self._lock:
            previous, self._response = self._response, None
            if self._status.state in (JobState.SUBMITTING, JobState.STREAMING):
                logger.info(f"Job {self._status.job_id}: {ERROR_MESSAGES['superseded']}")
            job_id = self._status.job_id + 1
            self.accumulator.reset()
            self.tracker.reset()
            self._status = JobStatus(job_id=job_id, state=JobState.SUBMITTING, request=request)

        if previous is not None:
            previous.close()
        logger.info(f"Job {job_id}: {len(request.base_numbers)} base numbers, range {request.range_size}, "
                    f"ages {request.min_age}-{request.max_age}")
        return job_id

    def _is_active(self, job_id: int) -> bool:
        status = self._status
        return status.job_id == job_id and status.state in (JobState.SUBMITTING, JobState.STREAMING)

    def _transition(self, job_id: int, state: JobState, error: Optional[str] = None) -> bool:
        with self._lock:
            if not self._is_active(job_id):
                return False
            self._status = replace(self._status, state=state, error=error)
        logger.debug(f"Job {job_id} -> {state.value}")
        return True

    def _fail(self, job_id: int, message: str) -> None:
        if self._transition(job_id, JobState.FAILED, message):
            logger.error(f"Job {job_id} failed: {message}")

    def _run(self, job_id: int, request: JobRequest) -> None:
        try:
            response = self.session.post(
                self.api_url,
                json=request.to_payload(),
                stream=True,
                timeout=(CONNECT_TIMEOUT, None),
            )
        except requests.exceptions.RequestException as e:
            logger.debug(f"Request for job {job_id} failed: {e}")
            self._fail(job_id, ERROR_MESSAGES['connection_error'])
            return

        with self._lock:
            if not self._is_active(job_id):
                response.close()
                return
            self._response = response

        try:
            if response.status_code >= 400:
                self._fail(job_id, ERROR_MESSAGES['http_error'].format(status=response.status_code))
                return
            if self._transition(job_id, JobState.STREAMING):
                self._consume(job_id, response)
        except (ServerError, TransportError) as e:
            self._fail(job_id, str(e))
        except requests.exceptions.RequestException as e:
            logger.debug(f"Stream for job {job_id} broke: {e}")
            self._fail(job_id, ERROR_MESSAGES['stream_ended'])
        except Exception as e:
            with self._lock:
                active = self._is_active(job_id)
            if not active:
                # Transport closed underneath us by cancel() or a newer submission
                logger.debug(f"Stream for job {job_id} closed after it ended: {e}")
            else:
                logger.exception(f"Job {job_id} encountered an unexpected error")
                self._fail(job_id, f"Unexpected error: {e}")
        finally:
            with self._lock:
                if self._response is response:
                    self._response = None
            response.close()

    def _consume(self, job_id: int, response) -> None:
        framer = StreamFramer()
        dispatcher = EventDispatcher({
            BatchEvent: lambda event: self._on_batch(job_id, event),
            ProgressEvent: lambda event: self._on_progress(job_id, event),
            CompleteEvent: lambda event: self._on_complete(job_id, event),
            ErrorEvent: lambda event: self._on_error(job_id, event),
        })

        for line in framer.iter_lines(response.iter_content(chunk_size=None)):
            dispatcher.dispatch(line)
            with self._lock:
                if not self._is_active(job_id):
                    break

        if dispatcher.skipped:
            logger.warning(f"Job {job_id}: skipped {dispatcher.skipped} malformed frames")
        self._fail(job_id, ERROR_MESSAGES['stream_ended'])

    # --- Event handlers ---

    def _on_batch(self, job_id: int, event: BatchEvent) -> None:
        with self._lock:
            if not self._is_active(job_id):
                return
            self.accumulator.apply_batch(event.records)
            self.tracker.apply_progress(event.progress)

    def _on_progress(self, job_id: int, event: ProgressEvent) -> None:
        with self._lock:
            if not self._is_active(job_id):
                return
            self.tracker.apply_progress(event.progress)

    def _on_complete(self, job_id: int, event: CompleteEvent) -> None:
        with self._lock:
            if not self._is_active(job_id):
                return
            if event.results is not None:
                self.accumulator.replace_all(event.results)
            else:
                self.tracker.apply_completion(event.processed, event.rate_limit_hits)
            self._transition(job_id, JobState.COMPLETED)
        progress = self.tracker.current()
        logger.info(f"Job {job_id} completed: {progress.processed}/{progress.total} processed, "
                    f"{progress.rate_limit_hits} rate-limit hits")

    def _on_error(self, job_id: int, event: ErrorEvent) -> None:
        raise ServerError(event.message)
