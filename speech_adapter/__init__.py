from .config import ChannelConfig, RetrySpec, ServiceConfig
from .exceptions import (
    BackpressureError,
    ChannelClosedError,
    ChunkParseError,
    InvalidOptionError,
    MissingParameterError,
    NoCorporaError,
    PollingTimeoutError,
    ServiceError,
    SpeechAdapterError,
    TrainingFailedError,
    TransportError,
    UnexpectedStatusError,
    WaitCancelledError,
)
from .polling import Failed, Pending, PollingWaiter, StatusOutcome, Terminal
from .recognition import (
    ChannelState,
    DuplexRecognitionChannel,
    ErrorEvent,
    FinalResultEvent,
    PartialResultEvent,
    RecognitionEvent,
    SpeakerLabelsEvent,
    StateChangedEvent,
    decode_chunk,
)
from .service import SpeechToTextService

__all__ = [
    "ChannelConfig",
    "RetrySpec",
    "ServiceConfig",
    "SpeechToTextService",
    "PollingWaiter",
    "StatusOutcome",
    "Pending",
    "Terminal",
    "Failed",
    "DuplexRecognitionChannel",
    "ChannelState",
    "RecognitionEvent",
    "PartialResultEvent",
    "FinalResultEvent",
    "SpeakerLabelsEvent",
    "ErrorEvent",
    "StateChangedEvent",
    "decode_chunk",
    "SpeechAdapterError",
    "ServiceError",
    "PollingTimeoutError",
    "NoCorporaError",
    "UnexpectedStatusError",
    "TrainingFailedError",
    "WaitCancelledError",
    "ChunkParseError",
    "TransportError",
    "ChannelClosedError",
    "BackpressureError",
    "InvalidOptionError",
    "MissingParameterError",
]
