"""Exceptions raised by speech_adapter components."""

from typing import Any, Iterable, Optional

ERR_TIMEOUT = "ERR_TIMEOUT"
ERR_NO_CORPORA = "ERR_NO_CORPORA"


class SpeechAdapterError(Exception):
    """Base exception. `code` distinguishes synthetic errors from service errors."""

    code: Optional[str] = None

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ServiceError(SpeechAdapterError):
    """Raised when the remote service answers with an HTTP error."""

    def __init__(self, message: str, code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.code = code
        self.body = body


class PollingTimeoutError(SpeechAdapterError):
    """The polled resource is still in progress. Retryable."""

    code = ERR_TIMEOUT

    def __init__(self, message: str, attempts: int = 0, interval_millis: int = 0):
        super().__init__(message)
        self.attempts = attempts
        self.interval_millis = interval_millis

    def __str__(self) -> str:
        return (
            f"{self.args[0]} (attempts={self.attempts}, "
            f"interval={self.interval_millis}ms)"
        )


class NoCorporaError(SpeechAdapterError):
    code = ERR_NO_CORPORA


class UnexpectedStatusError(SpeechAdapterError):
    def __init__(self, message: str, status: Any = None):
        super().__init__(message)
        self.status = status


class TrainingFailedError(SpeechAdapterError):
    pass


class WaitCancelledError(SpeechAdapterError):
    pass


class ChunkParseError(SpeechAdapterError, ValueError):
    """An inbound payload is not UTF-8, or has no concatenation marker and is not valid JSON."""

    def __init__(self, message: str, raw: Any = None):
        super().__init__(message)
        self.raw = raw


class TransportError(SpeechAdapterError):
    pass


class ChannelClosedError(SpeechAdapterError):
    pass


class BackpressureError(SpeechAdapterError):
    pass


class InvalidOptionError(SpeechAdapterError, ValueError):
    def __init__(self, names: Iterable[str]):
        self.names = sorted(names)
        super().__init__(f"Unrecognized recognition option(s): {', '.join(self.names)}")


class MissingParameterError(SpeechAdapterError, ValueError):
    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(f"Missing required parameters: {', '.join(self.names)}")
