import threading
import time
import unittest
from unittest.mock import MagicMock

from speech_adapter.config import RetrySpec
from speech_adapter.exceptions import (
    ERR_TIMEOUT,
    PollingTimeoutError,
    ServiceError,
    TrainingFailedError,
    WaitCancelledError,
)
from speech_adapter.polling import Failed, Pending, PollingWaiter, Terminal


class TestPollingWaiter(unittest.TestCase):
    def setUp(self):
        self.mock_sleep = MagicMock()
        self.waiter = PollingWaiter(sleep=self.mock_sleep)

    def test_terminal_on_first_attempt(self):
        status_check = MagicMock(return_value=Terminal("done"))

        self.assertEqual(self.waiter.wait_for(status_check), "done")

        status_check.assert_called_once()
        self.mock_sleep.assert_not_called()

    def test_pending_k_times_then_terminal(self):
        k = 3
        status_check = MagicMock(side_effect=[Pending()] * k + [Terminal({"status": "ready"})])

        result = self.waiter.wait_for(status_check, RetrySpec(interval_millis=250, max_attempts=10))

        self.assertEqual(result, {"status": "ready"})
        self.assertEqual(status_check.call_count, k + 1)
        self.assertEqual(self.mock_sleep.call_count, k)
        self.mock_sleep.assert_called_with(0.25)

    def test_always_pending_raises_last_timeout_error(self):
        status_check = MagicMock(return_value=Pending("still busy"))

        with self.assertRaises(PollingTimeoutError) as ctx:
            self.waiter.wait_for(status_check, RetrySpec(interval_millis=100, max_attempts=4))

        self.assertEqual(status_check.call_count, 4)
        # No sleep after the final attempt
        self.assertEqual(self.mock_sleep.call_count, 3)

        error = ctx.exception
        self.assertEqual(error.code, ERR_TIMEOUT)
        self.assertEqual(error.attempts, 4)
        self.assertEqual(error.interval_millis, 100)
        self.assertIn("still busy", str(error))

    def test_non_retryable_failure_is_raised_immediately(self):
        status_check = MagicMock(return_value=Failed(TrainingFailedError("boom")))

        with self.assertRaises(TrainingFailedError):
            self.waiter.wait_for(status_check)

        status_check.assert_called_once()
        self.mock_sleep.assert_not_called()

    def test_exception_from_status_check_is_not_retried(self):
        status_check = MagicMock(side_effect=ServiceError("not found", code=404))

        with self.assertRaises(ServiceError) as ctx:
            self.waiter.wait_for(status_check)

        self.assertEqual(ctx.exception.code, 404)
        status_check.assert_called_once()

    def test_custom_retry_predicate(self):
        status_check = MagicMock(side_effect=[
            ServiceError("unavailable", code=503),
            Pending(),
            Terminal(42),
        ])
        spec = RetrySpec(
            interval_millis=0,
            max_attempts=5,
            is_retryable=lambda e: e.code in (503, ERR_TIMEOUT),
        )

        self.assertEqual(self.waiter.wait_for(status_check, spec), 42)
        self.assertEqual(status_check.call_count, 3)

    def test_last_error_is_surfaced_on_exhaustion(self):
        status_check = MagicMock(side_effect=[
            Pending(),
            ServiceError("unavailable", code=503),
        ])
        spec = RetrySpec(interval_millis=0, max_attempts=2, is_retryable=lambda e: True)

        with self.assertRaises(ServiceError):
            self.waiter.wait_for(status_check, spec)

    def test_unknown_outcome_type(self):
        with self.assertRaises(TypeError):
            self.waiter.wait_for(lambda: "ready")

    def test_elapsed_time_matches_interval(self):
        waiter = PollingWaiter()
        status_check = MagicMock(side_effect=[Pending(), Pending(), Terminal("ok")])

        started = time.monotonic()
        waiter.wait_for(status_check, RetrySpec(interval_millis=20, max_attempts=5))
        elapsed = time.monotonic() - started

        self.assertGreaterEqual(elapsed, 0.04)
        self.assertLess(elapsed, 1.0)


class TestPollingWaiterCancellation(unittest.TestCase):
    def test_cancelled_before_first_attempt(self):
        cancel_event = threading.Event()
        cancel_event.set()
        status_check = MagicMock()

        with self.assertRaises(WaitCancelledError):
            PollingWaiter().wait_for(status_check, cancel_event=cancel_event)

        status_check.assert_not_called()

    def test_cancelled_between_attempts(self):
        cancel_event = threading.Event()

        def status_check():
            cancel_event.set()
            return Pending()

        started = time.monotonic()
        with self.assertRaises(WaitCancelledError):
            PollingWaiter().wait_for(
                status_check,
                RetrySpec(interval_millis=10000, max_attempts=3),
                cancel_event=cancel_event,
            )

        self.assertLess(time.monotonic() - started, 1.0)

    def test_unset_event_waits_the_interval(self):
        status_check = MagicMock(side_effect=[Pending(), Terminal("ok")])

        result = PollingWaiter().wait_for(
            status_check,
            RetrySpec(interval_millis=10, max_attempts=2),
            cancel_event=threading.Event(),
        )

        self.assertEqual(result, "ok")


if __name__ == "__main__":
    unittest.main()
