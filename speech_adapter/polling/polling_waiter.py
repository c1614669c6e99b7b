import logging
import threading
import time
from typing import Any, Callable, Optional

from ..config import RetrySpec
from ..exceptions import PollingTimeoutError, WaitCancelledError
from .status import Failed, Pending, StatusOutcome, Terminal

logger = logging.getLogger(__name__)


class PollingWaiter:
    """
    Runs a status check at a fixed interval until it reaches a terminal state.

    A `Pending` outcome is turned into a retryable PollingTimeoutError. When
    the attempt budget is exhausted, the last error observed is raised, so the
    caller keeps the root cause rather than a generic "too many attempts".

    Attempts are strictly sequential and run on the caller's thread.
    """

    def __init__(self, sleep: Callable[[float], None] = time.sleep):
        self._sleep = sleep

    def wait_for(
        self,
        status_check: Callable[[], StatusOutcome],
        retry_spec: Optional[RetrySpec] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        Poll `status_check` until it reports a terminal outcome.

        Args:
            status_check: Callable returning a StatusOutcome. Exceptions it
                raises are handled like a `Failed` outcome.
            retry_spec: Interval, attempt budget and retry predicate.
            cancel_event: Optional event; once set, the waiter stops before
                the next attempt with WaitCancelledError.

        Returns:
            The value carried by the `Terminal` outcome.

        Raises:
            The first non-retryable error, or the last retryable error once
            `max_attempts` attempts have been made.
        """
        spec = retry_spec or RetrySpec()
        last_error: Optional[BaseException] = None

        for attempt in range(1, spec.max_attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise WaitCancelledError(f"Wait cancelled after {attempt - 1} attempts")

            logger.debug(f"Status check attempt {attempt}/{spec.max_attempts}")

            try:
                outcome = status_check()
            except Exception as e:
                outcome = Failed(e)

            if isinstance(outcome, Terminal):
                logger.debug(f"Terminal status reached after {attempt} attempts")
                return outcome.value

            if isinstance(outcome, Pending):
                error = PollingTimeoutError(
                    outcome.reason,
                    attempts=attempt,
                    interval_millis=spec.interval_millis,
                )
            elif isinstance(outcome, Failed):
                error = outcome.error
            else:
                raise TypeError(f"Unexpected status outcome: {outcome!r}")

            if not spec.is_retryable(error):
                logger.debug(f"Non-retryable error on attempt {attempt}: {error}")
                raise error

            last_error = error
            if attempt < spec.max_attempts:
                self._wait(spec.interval_seconds, cancel_event)

        logger.warning(
            f"Giving up after {spec.max_attempts} attempts "
            f"({spec.interval_millis}ms apart): {last_error}"
        )
        raise last_error

    def _wait(self, seconds: float, cancel_event: Optional[threading.Event]):
        if cancel_event is None:
            self._sleep(seconds)
        elif cancel_event.wait(seconds):
            raise WaitCancelledError("Wait cancelled while sleeping between attempts")


def wait_for(
    status_check: Callable[[], StatusOutcome],
    retry_spec: Optional[RetrySpec] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Any:
    """Shortcut for `PollingWaiter().wait_for(...)`."""
    return PollingWaiter().wait_for(status_check, retry_spec, cancel_event)
