from abc import ABC
from enum import Enum
from uuid import UUID, uuid4


class ChannelState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (ChannelState.CLOSED, ChannelState.ERRORED)


class RecognitionEvent(ABC):
    """
    Something the recognition channel reports to its consumer.

    Keyword arguments become attributes (`event.transcript`,
    `event["payload"]`). Every event gets a unique `id`, so a consumer that
    fans events out to several places can tell duplicates from repeats. Two
    events compare equal when they have the same class and content, whatever
    their ids.
    """

    def __init__(self, **kwargs):
        if self.__class__ == RecognitionEvent:
            raise TypeError('RecognitionEvent is an abstract class and cannot be instantiated directly')

        self._id = uuid4()

        for k, v in kwargs.items():
            if not hasattr(self, k):
                setattr(self, k, v)
            else:
                raise AttributeError(f'{self.__class__.__name__} already has attribute {k}')

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def id(self) -> UUID:
        return self._id

    def _content(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if k != '_id'}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self._content() == other._content()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self._content()})'

    def get(self, key: str, default=None):
        return self._content().get(key, default)

    def __getitem__(self, key: str):
        return self._content()[key]


class PartialResultEvent(RecognitionEvent):
    """Interim transcript, may still change."""


class FinalResultEvent(RecognitionEvent):
    """Committed transcript segment."""


class SpeakerLabelsEvent(RecognitionEvent):
    pass


class ErrorEvent(RecognitionEvent):
    """
    A service error message, an undecodable payload, or a transport failure.

    `terminal` is True only for the transport failure that moves the channel
    to ERRORED.
    """


class StateChangedEvent(RecognitionEvent):
    pass
