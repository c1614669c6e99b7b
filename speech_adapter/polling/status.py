from dataclasses import dataclass
from typing import Any


class StatusOutcome:
    """Result of one status check: Pending, Terminal or Failed."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


@dataclass
class Pending(StatusOutcome):
    reason: str = "Operation is still in progress"


@dataclass
class Terminal(StatusOutcome):
    value: Any = None


@dataclass
class Failed(StatusOutcome):
    error: BaseException
