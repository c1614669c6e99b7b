"""
Configuration classes for speech_adapter components.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

import dotenv
import websocket

from .exceptions import ERR_TIMEOUT, InvalidOptionError

DEFAULT_INTERVAL_MILLIS = 5000
DEFAULT_MAX_ATTEMPTS = 30

RECOGNITION_OPTIONS_ALLOWED = frozenset([
    "max_alternatives",
    "timestamps",
    "word_confidence",
    "inactivity_timeout",
    "model",
    "content-type",
    "interim_results",
    "keywords",
    "keywords_threshold",
    "word_alternatives_threshold",
    "profanity_filter",
    "smart_formatting",
    "customization_id",
    "acoustic_customization_id",
    "speaker_labels",
    "customization_weight",
    "base_model_version",
])

# Options the service reads from the connection URL rather than the start message
QUERY_OPTIONS = frozenset([
    "model",
    "customization_id",
    "acoustic_customization_id",
    "base_model_version",
])

_OPTION_ALIASES = {
    "content_type": "content-type",
}


def normalize_recognition_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Resolve aliases and reject option names the service does not accept.

    Options set to None are dropped.

    Raises:
        InvalidOptionError: If any option name is not recognized.
    """
    normalized = {}
    unknown = []
    for name, value in (options or {}).items():
        name = _OPTION_ALIASES.get(name, name)
        if name not in RECOGNITION_OPTIONS_ALLOWED:
            unknown.append(name)
            continue
        if value is not None:
            normalized[name] = value

    if unknown:
        raise InvalidOptionError(unknown)

    return normalized


def _is_timeout_class(error: BaseException) -> bool:
    return getattr(error, "code", None) == ERR_TIMEOUT


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RetrySpec:
    """
    Configuration of a bounded retry loop.

    Attributes:
        interval_millis: Milliseconds to wait between two attempts.
            Default: 5000

        max_attempts: Maximum number of attempts, the first one included.
            Default: 30 (about 150 seconds in the worst case)

        is_retryable: Predicate deciding whether an error allows another
            attempt. The default only retries timeout-class errors, i.e.
            errors whose `code` is "ERR_TIMEOUT".
    """

    interval_millis: int = DEFAULT_INTERVAL_MILLIS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    is_retryable: Callable[[BaseException], bool] = _is_timeout_class

    def __post_init__(self):
        if self.interval_millis < 0:
            raise ValueError(
                f"interval_millis must be non-negative, got {self.interval_millis}"
            )

        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )

    @property
    def interval_seconds(self) -> float:
        return self.interval_millis / 1000.0


@dataclass
class ChannelConfig:
    """
    Configuration for a DuplexRecognitionChannel.

    Attributes:
        url: WebSocket endpoint of the recognize operation (ws:// or wss://).

        headers: Opaque header material sent with the handshake, typically the
            authorization header supplied by the caller.

        options: Recognition options. Names outside
            RECOGNITION_OPTIONS_ALLOWED are rejected; `content_type` is
            accepted as an alias of `content-type`.

        verify_tls: Whether the server certificate is verified.
            Default: True

        max_queued_writes: Maximum number of audio chunks held while the
            connection is not ready. Writes beyond it are rejected.
            Default: 64

        close_timeout: Seconds to wait for the service to confirm a stop
            request before the connection is closed anyway.
            Default: 5.0

        user_agent: Value of the user-agent header, if not given in `headers`.

        connection_factory: Callable building the connection object. It is
            called like `websocket.WebSocketApp`.
    """

    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    verify_tls: bool = True
    max_queued_writes: int = 64
    close_timeout: float = 5.0
    user_agent: Optional[str] = "speech-adapter-python"
    connection_factory: Callable[..., Any] = websocket.WebSocketApp

    def __post_init__(self):
        if not self.url:
            raise ValueError("url is required")

        if self.max_queued_writes < 1:
            raise ValueError(
                f"max_queued_writes must be positive, got {self.max_queued_writes}"
            )

        if self.close_timeout <= 0:
            raise ValueError(
                f"close_timeout must be positive, got {self.close_timeout}"
            )

        self.options = normalize_recognition_options(self.options)

    @property
    def query_options(self) -> Dict[str, Any]:
        return {k: v for k, v in self.options.items() if k in QUERY_OPTIONS}

    @property
    def start_options(self) -> Dict[str, Any]:
        return {k: v for k, v in self.options.items() if k not in QUERY_OPTIONS}


@dataclass
class ServiceConfig:
    """
    Configuration for SpeechToTextService.

    Attributes:
        url: Base URL of the service, e.g. https://host/speech-to-text/api

        headers: Headers added to every request. Authentication material goes
            here; it is not interpreted.

        verify_tls: Whether server certificates are verified.
            Default: True

        timeout: Timeout in seconds for plain REST calls.
            Default: 30
    """

    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    verify_tls: bool = True
    timeout: float = 30

    def __post_init__(self):
        if not self.url:
            raise ValueError("url is required")

        self.url = self.url.rstrip("/")

        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ServiceConfig":
        """
        Build a configuration from environment variables.

        A `.env` file is loaded first, without overriding variables that are
        already set.

        Reads SPEECH_TO_TEXT_URL, SPEECH_TO_TEXT_BEARER_TOKEN and
        SPEECH_TO_TEXT_DISABLE_SSL_VERIFICATION.
        """
        dotenv.load_dotenv(dotenv_path)

        headers = {}
        token = os.environ.get("SPEECH_TO_TEXT_BEARER_TOKEN")
        if token:
            headers["Authorization"] = f"Bearer {token}"

        return cls(
            url=os.environ.get("SPEECH_TO_TEXT_URL", ""),
            headers=headers,
            verify_tls=not _env_flag("SPEECH_TO_TEXT_DISABLE_SSL_VERIFICATION"),
        )
