from .polling_waiter import PollingWaiter, wait_for
from .status import Failed, Pending, StatusOutcome, Terminal
from .waiters import (
    classify_corpora,
    classify_customization,
    wait_for_corpora_analyzed,
    wait_for_customization_ready,
)

__all__ = [
    "PollingWaiter",
    "wait_for",
    "StatusOutcome",
    "Pending",
    "Terminal",
    "Failed",
    "classify_corpora",
    "classify_customization",
    "wait_for_corpora_analyzed",
    "wait_for_customization_ready",
]
