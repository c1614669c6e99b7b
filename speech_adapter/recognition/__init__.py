"""Streaming recognition over a duplex WebSocket connection.

Create a channel with a ChannelConfig, write audio chunks to it and consume
the resulting events either through a callback or by iterating `events()`.
"""

from .chunk_decoder import decode_chunk, is_decoded, safe_decode_chunk
from .duplex_channel import DuplexRecognitionChannel
from .events import (
    ChannelState,
    ErrorEvent,
    FinalResultEvent,
    PartialResultEvent,
    RecognitionEvent,
    SpeakerLabelsEvent,
    StateChangedEvent,
)

__all__ = [
    "decode_chunk",
    "safe_decode_chunk",
    "is_decoded",
    "DuplexRecognitionChannel",
    "ChannelState",
    "RecognitionEvent",
    "PartialResultEvent",
    "FinalResultEvent",
    "SpeakerLabelsEvent",
    "ErrorEvent",
    "StateChangedEvent",
]
