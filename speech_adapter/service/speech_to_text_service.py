import logging
import threading
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Union

import requests

from ..config import DEFAULT_INTERVAL_MILLIS, DEFAULT_MAX_ATTEMPTS, ChannelConfig, RetrySpec, ServiceConfig
from ..exceptions import MissingParameterError, ServiceError
from ..polling import PollingWaiter, wait_for_corpora_analyzed, wait_for_customization_ready
from ..recognition import DuplexRecognitionChannel, RecognitionEvent
from ..recognition.chunk_decoder import decode_chunk, safe_decode_chunk
from .deprecated import deprecated_alias

logger = logging.getLogger(__name__)

USER_AGENT = "speech-adapter-python"


def _check_required(**params):
    missing = [name for name, value in params.items() if value in (None, "")]
    if missing:
        raise MissingParameterError(missing)


class SpeechToTextService:
    """
    Minimal REST client for the speech-to-text service.

    It covers the calls the waiters and the streaming channel rely on, plus
    the legacy session-based recognition calls. Authentication is not handled
    here: whatever is in `config.headers` is sent as is.
    """

    def __init__(
        self,
        config: ServiceConfig,
        session: Optional[requests.Session] = None,
        waiter: Optional[PollingWaiter] = None,
    ):
        self._config = config
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = USER_AGENT
        self._session.headers.update(config.headers)
        self._session.verify = config.verify_tls
        self._waiter = waiter or PollingWaiter()

    @property
    def config(self) -> ServiceConfig:
        return self._config

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.close()

    # Plain REST calls ---------------------------------------------------------
    def _url(self, path: str) -> str:
        return f"{self._config.url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        kwargs.setdefault("timeout", self._config.timeout)
        logger.debug(f"{method} {path}")

        response = self._session.request(method, self._url(path), **kwargs)
        self._raise_for_status(response)
        return response.json()

    @staticmethod
    def _raise_for_status(response: requests.Response):
        if response.ok:
            return

        try:
            body = response.json()
        except ValueError:
            body = response.text

        message = body.get("error", response.reason) if isinstance(body, dict) else response.reason
        raise ServiceError(
            f"{response.request.method} {response.url} failed with {response.status_code}: {message}",
            code=response.status_code,
            body=body,
        )

    def list_models(self) -> Dict[str, Any]:
        return self._request("GET", "/v1/models")

    def list_corpora(self, customization_id: str) -> Dict[str, Any]:
        _check_required(customization_id=customization_id)
        return self._request("GET", f"/v1/customizations/{customization_id}/corpora")

    def get_language_model(self, customization_id: str) -> Dict[str, Any]:
        _check_required(customization_id=customization_id)
        return self._request("GET", f"/v1/customizations/{customization_id}")

    def recognize(
        self,
        audio: Union[bytes, Iterable[bytes], Any],
        content_type: Optional[str] = None,
        **params,
    ) -> Dict[str, Any]:
        """
        One-shot recognition of a complete audio body.

        Raises:
            ValueError: `audio` is a stream or iterable and no `content_type`
                was given.
        """
        if not isinstance(audio, (bytes, bytearray)) and not content_type:
            raise ValueError("If providing `audio` as a Stream, `content_type` is required.")

        headers = {"Content-Type": content_type} if content_type else {}
        return self._request("POST", "/v1/recognize", data=audio, headers=headers, params=params)

    # Waiters ------------------------------------------------------------------
    def when_corpora_analyzed(
        self,
        customization_id: str,
        interval: int = DEFAULT_INTERVAL_MILLIS,
        times: int = DEFAULT_MAX_ATTEMPTS,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, Any]:
        """
        Wait until the corpora of a custom language model are analyzed.

        Args:
            customization_id: The GUID of the custom language model.
            interval: Milliseconds between status checks.
            times: Maximum number of status checks.
            cancel_event: Optional event that aborts the wait when set.

        Returns:
            The final corpora listing.
        """
        _check_required(customization_id=customization_id)
        return wait_for_corpora_analyzed(
            lambda: self.list_corpora(customization_id),
            RetrySpec(interval_millis=interval, max_attempts=times),
            waiter=self._waiter,
            cancel_event=cancel_event,
        )

    def when_customization_ready(
        self,
        customization_id: str,
        interval: int = DEFAULT_INTERVAL_MILLIS,
        times: int = DEFAULT_MAX_ATTEMPTS,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, Any]:
        """
        Wait until a custom language model is 'ready' or 'available'.

        The model stays 'pending' until at least one corpus is added.

        Returns:
            The customization object as last reported by the service.
        """
        _check_required(customization_id=customization_id)
        return wait_for_customization_ready(
            lambda: self.get_language_model(customization_id),
            RetrySpec(interval_millis=interval, max_attempts=times),
            waiter=self._waiter,
            cancel_event=cancel_event,
        )

    # Streaming ----------------------------------------------------------------
    def _websocket_url(self) -> str:
        url = self._config.url
        if url.startswith("https://"):
            url = "wss://" + url[len("https://"):]
        elif url.startswith("http://"):
            url = "ws://" + url[len("http://"):]
        return f"{url}/v1/recognize"

    def recognize_using_websocket(
        self,
        on_event: Optional[Callable[[RecognitionEvent], None]] = None,
        headers: Optional[Dict[str, str]] = None,
        **options,
    ) -> DuplexRecognitionChannel:
        """
        Open a duplex recognition channel.

        Keyword arguments are recognition options (see
        RECOGNITION_OPTIONS_ALLOWED). Unknown names raise InvalidOptionError.
        """
        channel_headers = {"User-Agent": self._session.headers.get("User-Agent", USER_AGENT)}
        authorization = self._config.headers.get("Authorization")
        if authorization:
            channel_headers["Authorization"] = authorization
        channel_headers.update(headers or {})

        config = ChannelConfig(
            url=self._websocket_url(),
            headers=channel_headers,
            options=options,
            verify_tls=self._config.verify_tls,
        )
        return DuplexRecognitionChannel(config, on_event=on_event)

    # Legacy session-based recognition -----------------------------------------
    def recognize_live(
        self,
        session_id: str,
        content_type: str,
        cookie_session: str,
        audio: Iterable[bytes],
        continuous: bool = False,
    ) -> Any:
        """
        Stream audio to a recognition session with chunked transfer encoding.

        Deprecated by the service in favor of recognize_using_websocket().

        Returns:
            The decoded response. When the service wrote several results back
            to back, the last one.

        Raises:
            ChunkParseError: The response body is not JSON.
        """
        _check_required(session_id=session_id, content_type=content_type, cookie_session=cookie_session)

        headers = {
            "Cookie": f"SESSIONID={cookie_session}",
            "Content-Type": content_type,
        }
        params = {"continuous": "true"} if continuous else None

        # A generator body makes requests use chunked transfer encoding
        body = (chunk for chunk in audio)

        response = self._session.post(
            self._url(f"/v1/sessions/{session_id}/recognize"),
            data=body,
            headers=headers,
            params=params,
        )
        self._raise_for_status(response)
        response.encoding = "utf-8"
        return decode_chunk(response.text)

    def observe_result(
        self,
        session_id: str,
        cookie_session: str,
        interim_results: bool = False,
    ) -> Iterator[Any]:
        """
        Observe the results of an upcoming or ongoing session recognition.

        Must be started before the POST to recognize finishes, otherwise it
        waits for the next recognition. Yields one decoded object per chunk
        received; a chunk that cannot be decoded is yielded as raw text.
        """
        _check_required(session_id=session_id, cookie_session=cookie_session)

        headers = {
            "Cookie": f"SESSIONID={cookie_session}",
            "Accept": "application/json",
        }
        params = {"interim_results": "true"} if interim_results else None

        with self._session.get(
            self._url(f"/v1/sessions/{session_id}/observe_result"),
            headers=headers,
            params=params,
            stream=True,
        ) as response:
            self._raise_for_status(response)
            response.encoding = "utf-8"
            for chunk in response.iter_content(chunk_size=None, decode_unicode=True):
                if chunk:
                    yield safe_decode_chunk(chunk)

    # Renamed methods ----------------------------------------------------------
    get_models = deprecated_alias("get_models", "list_models")
    get_corpora = deprecated_alias("get_corpora", "list_corpora")
    get_customization = deprecated_alias("get_customization", "get_language_model")
    create_recognize_stream = deprecated_alias("create_recognize_stream", "recognize_using_websocket")
