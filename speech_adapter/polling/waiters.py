"""Waiters for corpus analysis and language model training.

Both poll a status callable supplied by the caller, usually a bound method of
SpeechToTextService, and only look at the `status` fields of its result.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from ..config import RetrySpec
from ..exceptions import NoCorporaError, TrainingFailedError, UnexpectedStatusError
from .polling_waiter import PollingWaiter
from .status import Failed, Pending, StatusOutcome, Terminal

logger = logging.getLogger(__name__)

CORPUS_BEING_PROCESSED = "being_processed"
CORPUS_ANALYZED = "analyzed"

CUSTOMIZATION_PENDING_STATUSES = ("pending", "training")
CUSTOMIZATION_READY_STATUSES = ("ready", "available")
CUSTOMIZATION_FAILED = "failed"


def _corpus_statuses(corpora_listing: Dict[str, Any]) -> list:
    return [corpus.get("status") for corpus in corpora_listing.get("corpora", [])]


def classify_corpora(corpora_listing: Dict[str, Any]) -> StatusOutcome:
    statuses = _corpus_statuses(corpora_listing)

    if CORPUS_BEING_PROCESSED in statuses:
        return Pending("Corpora is still being processed, try increasing interval or times params")

    if CORPUS_ANALYZED in statuses:
        return Terminal(corpora_listing)

    return Failed(UnexpectedStatusError(
        f"Unexpected corpus analysis status: {statuses}",
        status=statuses,
    ))


def classify_customization(customization: Dict[str, Any]) -> StatusOutcome:
    status = customization.get("status")

    if status in CUSTOMIZATION_PENDING_STATUSES:
        return Pending("Customization is still pending, try increasing interval or times params")

    if status in CUSTOMIZATION_READY_STATUSES:
        return Terminal(customization)

    if status == CUSTOMIZATION_FAILED:
        return Failed(TrainingFailedError("Customization training failed"))

    return Failed(UnexpectedStatusError(
        f"Unexpected customization status: {status}",
        status=status,
    ))


def wait_for_corpora_analyzed(
    list_corpora: Callable[[], Dict[str, Any]],
    retry_spec: Optional[RetrySpec] = None,
    waiter: Optional[PollingWaiter] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """
    Wait until no corpus is being processed and at least one is analyzed.

    Raises:
        NoCorporaError: The customization has no corpus, so nothing can be
            analyzed. Raised before polling starts.
    """
    listing = list_corpora()
    if not listing.get("corpora"):
        raise NoCorporaError("Customization has no corpora and therefore corpus cannot be analyzed")

    logger.info(f"Waiting for analysis of {len(listing['corpora'])} corpora")

    waiter = waiter or PollingWaiter()
    return waiter.wait_for(lambda: classify_corpora(list_corpora()), retry_spec, cancel_event)


def wait_for_customization_ready(
    get_customization: Callable[[], Dict[str, Any]],
    retry_spec: Optional[RetrySpec] = None,
    waiter: Optional[PollingWaiter] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """Wait until a custom language model is ready or available, and return it."""
    waiter = waiter or PollingWaiter()
    return waiter.wait_for(lambda: classify_customization(get_customization()), retry_spec, cancel_event)
