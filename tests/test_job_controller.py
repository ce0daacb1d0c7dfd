import json
import threading
import unittest
from unittest.mock import patch

import requests

from phone_scraper.config import ERROR_MESSAGES
from phone_scraper.core.exceptions import ValidationError
from phone_scraper.core.models import FailedAttempt, JobRequest, JobState, MatchRecord, ResultSet
from phone_scraper.operations.job_controller import JobController


def frame(payload):
    return ("data: " + json.dumps(payload) + "\n").encode("utf-8")


class DummyResponse:
    """Streams the given chunks; optionally stays open until closed."""

    def __init__(self, chunks, status_code=200, hold_open=False):
        self.status_code = status_code
        self._chunks = list(chunks)
        self.hold_open = hold_open
        self.delivered = threading.Event()
        self.closed = threading.Event()

    def iter_content(self, chunk_size=None):
        for chunk in self._chunks:
            yield chunk
        self.delivered.set()
        if self.hold_open:
            self.closed.wait(5)

    def close(self):
        self.closed.set()


REQUEST = JobRequest(api_key="key", base_numbers=("555",), range_size=2, min_age=10, max_age=20)

BATCH_1 = frame({
    "type": "batch",
    "data": {"ageRange": [{"Name": "A", "Number": "5550", "Age": 15}], "otherAges": [], "failed": []},
    "progress": {"processed": 1, "total": 2, "rateLimitHits": 0},
})
BATCH_2 = frame({
    "type": "batch",
    "data": {"ageRange": [], "otherAges": [], "failed": [{"Number": "5551", "StatusCode": 429, "Reason": "rate limited"}]},
    "progress": {"processed": 2, "total": 2, "rateLimitHits": 1},
})
COMPLETE = frame({"type": "complete", "processed": 2, "rateLimitHits": 1})


class TestJobController(unittest.TestCase):
    def setUp(self):
        self.controller = JobController(api_url="http://scraper.test/api/scrape")

    def test_starts_idle(self):
        status = self.controller.status()
        self.assertEqual(status.state, JobState.IDLE)
        self.assertEqual(self.controller.snapshot(), ResultSet())
        self.assertTrue(self.controller.wait(0))

    @patch("requests.Session.post")
    def test_incremental_batches(self, mock_post):
        mock_post.return_value = DummyResponse([BATCH_1, BATCH_2, COMPLETE])
        status = self.controller.submit(REQUEST)

        self.assertEqual(status.state, JobState.COMPLETED)
        self.assertIsNone(status.error)
        snap = self.controller.snapshot()
        self.assertEqual(snap.age_range, (MatchRecord("A", "5550", 15),))
        self.assertEqual(snap.other_ages, ())
        self.assertEqual(snap.failed, (FailedAttempt("5551", 429, "rate limited"),))
        progress = self.controller.progress()
        self.assertEqual((progress.processed, progress.total, progress.rate_limit_hits), (2, 2, 1))

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "http://scraper.test/api/scrape")
        self.assertTrue(kwargs["stream"])
        self.assertEqual(kwargs["json"], {
            "apiKey": "key", "phoneNumbers": ["555"], "rangeSize": 2, "minAge": 10, "maxAge": 20,
        })

    @patch("requests.Session.post")
    def test_frames_split_across_chunks(self, mock_post):
        wire = BATCH_1 + BATCH_2 + COMPLETE
        mock_post.return_value = DummyResponse([wire[:7], wire[7:150], wire[150:151], wire[151:]])
        status = self.controller.submit(REQUEST)
        self.assertEqual(status.state, JobState.COMPLETED)
        self.assertEqual(self.controller.snapshot().counts(), {'age_range': 1, 'other_ages': 0, 'failed': 1})

    @patch("requests.Session.post")
    def test_malformed_line_between_batches(self, mock_post):
        mock_post.return_value = DummyResponse([BATCH_1, b"data: {oops\n", BATCH_2, COMPLETE])
        status = self.controller.submit(REQUEST)
        self.assertEqual(status.state, JobState.COMPLETED)
        snap = self.controller.snapshot()
        self.assertEqual(len(snap.age_range), 1)
        self.assertEqual(len(snap.failed), 1)

    @patch("requests.Session.post")
    def test_unconvertible_frames_between_batches(self, mock_post):
        infinite_age = b'data: {"type": "batch", "data": {"ageRange": [{"Name": "X", "Number": "9", "Age": 1e999}]}}\n'
        nested = b"data: " + b"[" * 100000 + b"]" * 100000 + b"\n"
        for bad in (infinite_age, nested):
            with self.subTest(frame=bad[:40]):
                mock_post.return_value = DummyResponse([BATCH_1, bad, BATCH_2, COMPLETE])
                status = self.controller.submit(REQUEST)
                self.assertEqual(status.state, JobState.COMPLETED)
                self.assertIsNone(status.error)
                self.assertEqual(self.controller.snapshot().counts(), {'age_range': 1, 'other_ages': 0, 'failed': 1})
                self.assertEqual(self.controller.progress().processed, 2)

    @patch("requests.Session.post")
    def test_legacy_protocol(self, mock_post):
        mock_post.return_value = DummyResponse([
            frame({"type": "progress", "processed": 1, "total": 2,
                   "ageRangeCount": 0, "otherAgesCount": 1, "failedCount": 0}),
            frame({"type": "complete", "results": {
                "ageRange": [], "otherAges": [{"Name": "B", "Number": "5551", "Age": 44}], "failed": []}}),
        ])
        status = self.controller.submit(REQUEST)
        self.assertEqual(status.state, JobState.COMPLETED)
        self.assertEqual(self.controller.snapshot().other_ages, (MatchRecord("B", "5551", 44),))
        self.assertEqual(self.controller.progress().other_ages_count, 1)

    @patch("requests.Session.post")
    def test_server_error_event(self, mock_post):
        mock_post.return_value = DummyResponse([
            BATCH_1,
            frame({"type": "error", "message": "Invalid ScraperAPI key"}),
            BATCH_2,
        ])
        status = self.controller.submit(REQUEST)
        self.assertEqual(status.state, JobState.FAILED)
        self.assertEqual(status.error, "Invalid ScraperAPI key")
        # Records that arrived before the error are kept; later frames are not applied
        self.assertEqual(self.controller.snapshot().counts(), {'age_range': 1, 'other_ages': 0, 'failed': 0})

    @patch("requests.Session.post")
    def test_stream_ending_without_completion_fails(self, mock_post):
        mock_post.return_value = DummyResponse([BATCH_1, b'data: {"type": "complete"}'])
        status = self.controller.submit(REQUEST)
        self.assertEqual(status.state, JobState.FAILED)
        self.assertEqual(status.error, ERROR_MESSAGES['stream_ended'])
        self.assertEqual(len(self.controller.snapshot().age_range), 1)

    @patch("requests.Session.post")
    def test_connection_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        status = self.controller.submit(REQUEST)
        self.assertEqual(status.state, JobState.FAILED)
        self.assertEqual(status.error, ERROR_MESSAGES['connection_error'])

    @patch("requests.Session.post")
    def test_http_error_status(self, mock_post):
        response = DummyResponse([COMPLETE], status_code=500)
        mock_post.return_value = response
        status = self.controller.submit(REQUEST)
        self.assertEqual(status.state, JobState.FAILED)
        self.assertEqual(status.error, ERROR_MESSAGES['http_error'].format(status=500))
        self.assertTrue(response.closed.is_set())

    @patch("requests.Session.post")
    def test_broken_stream(self, mock_post):
        class BrokenResponse(DummyResponse):
            def iter_content(self, chunk_size=None):
                yield BATCH_1
                raise requests.exceptions.ChunkedEncodingError("connection reset")

        mock_post.return_value = BrokenResponse([])
        status = self.controller.submit(REQUEST)
        self.assertEqual(status.state, JobState.FAILED)
        self.assertEqual(status.error, ERROR_MESSAGES['stream_ended'])
        self.assertEqual(len(self.controller.snapshot().age_range), 1)

    @patch("requests.Session.post")
    def test_validation_error_never_contacts_service(self, mock_post):
        with self.assertRaises(ValidationError):
            self.controller.submit(JobRequest(api_key="k", base_numbers=(), range_size=2, min_age=10, max_age=20))
        mock_post.assert_not_called()
        self.assertEqual(self.controller.status().state, JobState.IDLE)

    @patch("requests.Session.post")
    def test_new_submission_supersedes_streaming_job(self, mock_post):
        first = DummyResponse([BATCH_1], hold_open=True)
        other = frame({
            "type": "batch",
            "data": {"otherAges": [{"Name": "C", "Number": "7770", "Age": 33}]},
            "progress": {"processed": 1, "total": 1, "rateLimitHits": 0},
        })
        second = DummyResponse([other, frame({"type": "complete", "processed": 1, "rateLimitHits": 0})])
        mock_post.side_effect = [first, second]

        self.controller.start(REQUEST)
        self.assertTrue(first.delivered.wait(5))
        self.assertEqual(self.controller.status().state, JobState.STREAMING)
        self.assertEqual(len(self.controller.snapshot().age_range), 1)
        self.assertEqual(self.controller.progress().processed, 1)

        second_request = JobRequest(api_key="key", base_numbers=("777",), range_size=1, min_age=30, max_age=40)
        job_id = self.controller.start(second_request)
        self.assertTrue(self.controller.wait(5))

        self.assertTrue(first.closed.is_set())
        status = self.controller.status()
        self.assertEqual(status.job_id, job_id)
        self.assertEqual(status.state, JobState.COMPLETED)
        self.assertEqual(status.request, second_request)
        snap = self.controller.snapshot()
        self.assertEqual(snap.age_range, ())
        self.assertEqual(snap.other_ages, (MatchRecord("C", "7770", 33),))
        progress = self.controller.progress()
        self.assertEqual((progress.processed, progress.total), (1, 1))

    @patch("requests.Session.post")
    def test_cancel_abandons_transport(self, mock_post):
        response = DummyResponse([BATCH_1], hold_open=True)
        mock_post.return_value = response

        self.controller.start(REQUEST)
        self.assertTrue(response.delivered.wait(5))
        self.controller.cancel()
        self.assertTrue(self.controller.wait(5))

        self.assertTrue(response.closed.is_set())
        status = self.controller.status()
        self.assertEqual(status.state, JobState.FAILED)
        self.assertEqual(status.error, ERROR_MESSAGES['cancelled'])
        self.assertEqual(len(self.controller.snapshot().age_range), 1)

    def test_cancel_when_idle_is_noop(self):
        self.controller.cancel()
        self.assertEqual(self.controller.status().state, JobState.IDLE)


if __name__ == '__main__':
    unittest.main()
