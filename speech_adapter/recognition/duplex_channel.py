import json
import logging
import queue
import ssl
import threading
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional
from urllib.parse import urlencode

import websocket

from ..config import ChannelConfig
from ..exceptions import BackpressureError, ChannelClosedError, TransportError
from .chunk_decoder import is_decoded, safe_decode_chunk
from .events import (
    ChannelState,
    ErrorEvent,
    FinalResultEvent,
    PartialResultEvent,
    RecognitionEvent,
    SpeakerLabelsEvent,
    StateChangedEvent,
)

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000

_END_OF_EVENTS = object()


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class DuplexRecognitionChannel:
    """
    Streams audio to the recognize WebSocket and turns replies into events.

    The connection is opened on a background thread as soon as the channel is
    created. Audio written before the handshake completes, or while the
    channel is paused, is queued and sent in write order once the
    channel is open. The queue is bounded: when it is full `write()` raises
    BackpressureError instead of growing. Use `wait_open()` before pushing
    more audio than the queue holds.

    Every inbound payload goes through `safe_decode_chunk`. A payload that
    cannot be decoded or classified becomes a non-terminal ErrorEvent, so one
    bad message never takes the channel down. Transport failures move the
    channel to ERRORED and end the event stream.

    Events are both passed to `on_event` (if given) and made available
    through `events()`. The callback never runs while the channel lock is
    held, and it may run on whichever thread produced the event.
    """

    def __init__(
        self,
        config: ChannelConfig,
        on_event: Optional[Callable[[RecognitionEvent], None]] = None,
    ):
        self._config = config
        self._on_event = on_event

        self._lock = threading.RLock()
        self._state = ChannelState.CONNECTING
        self._pending = deque()
        self._paused = False
        self._listening = False
        self._stop_requested = False
        self._close_timer: Optional[threading.Timer] = None

        self._events = queue.Queue()
        self._callback_backlog = deque()
        self._callback_lock = threading.RLock()
        self._handshake_done = threading.Event()
        self._terminated = threading.Event()

        self._ws = config.connection_factory(
            self._build_url(),
            header=self._build_headers(),
            on_open=self._on_open,
            on_message=self._on_message,
            on_error=self._on_error,
            on_close=self._on_close,
        )

        with self._delivering_events():
            self._emit(StateChangedEvent(previous=None, state=ChannelState.CONNECTING))

        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name='DuplexRecognitionChannelThread'
        )
        self._thread.start()

    # Public API ---------------------------------------------------------------
    @property
    def state(self) -> ChannelState:
        with self._lock:
            return self._state

    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    def is_listening(self) -> bool:
        """Whether the service has acknowledged the start message."""
        with self._lock:
            return self._listening

    def queued_writes(self) -> int:
        with self._lock:
            return len(self._pending)

    def wait_open(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the channel leaves CONNECTING.

        Returns:
            True if the channel is OPEN, False on timeout or if the
            connection was stopped or failed first.
        """
        self._handshake_done.wait(timeout)
        return self.state is ChannelState.OPEN

    def write(self, audio: bytes):
        """
        Send a chunk of audio, or queue it if the channel is not ready.

        Raises:
            ChannelClosedError: stop() was called or the channel is closed.
            BackpressureError: The write queue is full.
            TransportError: Sending failed; the channel is now ERRORED.
        """
        if not isinstance(audio, (bytes, bytearray, memoryview)):
            raise TypeError(f"audio must be bytes, got {type(audio).__name__}")

        with self._delivering_events(), self._lock:
            if self._stop_requested or self._state not in (ChannelState.CONNECTING, ChannelState.OPEN):
                raise ChannelClosedError(f"Channel is {self._state.value}, write rejected")

            if self._state is ChannelState.OPEN and not self._paused and not self._pending:
                self._send(bytes(audio), websocket.ABNF.OPCODE_BINARY)
                return

            if len(self._pending) >= self._config.max_queued_writes:
                raise BackpressureError(
                    f"Write queue is full ({self._config.max_queued_writes} chunks)"
                )

            self._pending.append(bytes(audio))
            logger.debug(f'Queued {len(audio)} bytes of audio ({len(self._pending)} chunks pending)')

    def pause(self):
        """Hold outgoing audio in the queue until resume() is called."""
        with self._lock:
            if self._state in (ChannelState.CONNECTING, ChannelState.OPEN):
                self._paused = True

    def resume(self):
        """Resume sending audio, flushing anything queued while paused."""
        with self._delivering_events(), self._lock:
            self._paused = False
            if self._state is ChannelState.OPEN:
                self._flush()

    def stop(self):
        """
        Ask the service to finish recognition and close the connection.

        Safe to call from any state; calls after the first one are no-ops.
        The channel reaches CLOSED when the connection closes, or after
        `close_timeout` seconds if the service never answers.
        """
        with self._delivering_events():
            if self._request_stop():
                self._close_socket()

    def events(self, timeout: Optional[float] = None) -> Iterator[RecognitionEvent]:
        """
        Yield events in arrival order until the channel is closed or errored.

        Args:
            timeout: Give up if no event arrives within this many seconds.
        """
        while True:
            try:
                event = self._events.get(timeout=timeout)
            except queue.Empty:
                return

            if event is _END_OF_EVENTS:
                # Leave the marker for any later consumer
                self._events.put(_END_OF_EVENTS)
                return

            yield event

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        """Block until the channel is CLOSED or ERRORED. Returns False on timeout."""
        return self._terminated.wait(timeout)

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.stop()
        self.wait_closed(self._config.close_timeout + 1)

    # Connection setup ---------------------------------------------------------
    def _build_url(self) -> str:
        query = self._config.query_options
        if not query:
            return self._config.url

        separator = "&" if "?" in self._config.url else "?"
        encoded = urlencode({k: _query_value(v) for k, v in sorted(query.items())})
        return f"{self._config.url}{separator}{encoded}"

    def _build_headers(self) -> Dict[str, str]:
        headers = dict(self._config.headers)
        if self._config.user_agent and not any(k.lower() == "user-agent" for k in headers):
            headers["User-Agent"] = self._config.user_agent
        return headers

    def _start_message(self) -> Dict[str, Any]:
        message = {"action": "start"}
        message.update(self._config.start_options)
        return message

    def _run(self):
        kwargs = {}
        if not self._config.verify_tls:
            kwargs["sslopt"] = {"cert_reqs": ssl.CERT_NONE, "check_hostname": False}

        with self._delivering_events():
            try:
                self._ws.run_forever(**kwargs)
            except Exception as e:
                logger.exception(f'Recognition connection loop failed: {e}')
                self._fail(TransportError(f"Connection loop failed: {e}"))
                return

            with self._lock:
                if self._state is ChannelState.CLOSING:
                    self._transition(ChannelState.CLOSED)
                elif not self._state.is_terminal:
                    self._fail(TransportError("Connection ended unexpectedly"))

    def _request_stop(self) -> bool:
        """Move to CLOSING. Returns True when the socket must be closed without a stop message."""
        with self._lock:
            if self._stop_requested or self._state not in (ChannelState.CONNECTING, ChannelState.OPEN):
                return False

            self._stop_requested = True
            was_open = self._state is ChannelState.OPEN

            if was_open:
                # Audio held by pause() is still part of the utterance
                self._paused = False
                try:
                    self._flush()
                except TransportError:
                    return False
            elif self._pending:
                logger.warning(f'Dropping {len(self._pending)} audio chunks queued before the connection opened')
                self._pending.clear()

            self._transition(ChannelState.CLOSING)

            self._close_timer = threading.Timer(self._config.close_timeout, self._on_close_timeout)
            self._close_timer.daemon = True
            self._close_timer.start()

            if not was_open:
                return True

            try:
                self._send(json.dumps({"action": "stop"}))
            except TransportError:
                pass
            return False

    # Connection callbacks -----------------------------------------------------
    def _on_open(self, ws):
        with self._delivering_events():
            close_now = False
            with self._lock:
                if self._state is not ChannelState.CONNECTING:
                    # stop() won the race against the handshake
                    close_now = True
                else:
                    logger.info(f'Recognition connection open: {self._config.url}')
                    try:
                        self._send(json.dumps(self._start_message()))
                        self._transition(ChannelState.OPEN)
                        self._flush()
                    except TransportError as e:
                        logger.error(f'Could not start recognition: {e}')

            if close_now:
                self._close_socket()

    def _on_message(self, ws, message):
        with self._delivering_events():
            data = safe_decode_chunk(message)

            if not is_decoded(data):
                logger.warning(f'Undecodable payload from the service: {str(data)[:200]}')
                self._emit(ErrorEvent(
                    message="Could not decode payload",
                    payload=data,
                    error=None,
                    terminal=False,
                ))
                return

            try:
                self._handle_message(data)
            except Exception as e:
                logger.exception(f'Could not handle payload from the service: {e}')
                self._emit(ErrorEvent(
                    message=f"Could not handle payload: {e}",
                    payload=data,
                    error=e,
                    terminal=False,
                ))

    def _on_error(self, ws, error):
        with self._delivering_events():
            logger.error(f'Recognition connection error: {error}')
            self._fail(TransportError(str(error)))

    def _on_close(self, ws, close_status_code=None, close_msg=None):
        logger.info(f'Recognition connection closed (code={close_status_code}, reason={close_msg})')
        with self._delivering_events(), self._lock:
            if self._state is ChannelState.CLOSING:
                self._transition(ChannelState.CLOSED)
            elif self._state is ChannelState.OPEN and close_status_code == NORMAL_CLOSURE:
                self._transition(ChannelState.CLOSED)
            elif not self._state.is_terminal:
                self._fail(TransportError(
                    f"Connection closed unexpectedly (code={close_status_code}, reason={close_msg})"
                ))

    def _on_close_timeout(self):
        with self._delivering_events():
            with self._lock:
                if self._state is not ChannelState.CLOSING:
                    return
                logger.warning(
                    f'Service did not close the connection within {self._config.close_timeout}s, closing it'
                )
                self._transition(ChannelState.CLOSED)

            self._close_socket()

    # Message handling ---------------------------------------------------------
    def _handle_message(self, data: Dict[str, Any]):
        if "error" in data:
            self._emit(ErrorEvent(
                message=data["error"],
                payload=data,
                error=None,
                terminal=False,
            ))
            return

        if "results" in data:
            results = data.get("results") or []
            event_class = FinalResultEvent if any(r.get("final") for r in results) else PartialResultEvent
            self._emit(event_class(
                results=results,
                result_index=data.get("result_index"),
                transcript=self._first_transcript(results),
                payload=data,
            ))

        if "speaker_labels" in data:
            self._emit(SpeakerLabelsEvent(speaker_labels=data["speaker_labels"], payload=data))

        if data.get("state") == "listening":
            self._handle_listening()

        if not data.keys() & {"results", "speaker_labels", "state"}:
            logger.debug(f'Ignoring message: {data}')

    def _handle_listening(self):
        close_now = False
        with self._lock:
            if self._state is ChannelState.CLOSING:
                # Second "listening": the service has processed the stop request
                close_now = True
            else:
                self._listening = True
                logger.debug('Service is listening')

        if close_now:
            self._close_socket()

    @staticmethod
    def _first_transcript(results) -> str:
        for result in results:
            alternatives = result.get("alternatives") or []
            if alternatives:
                return alternatives[0].get("transcript", "")
        return ""

    # Internals ----------------------------------------------------------------
    def _send(self, data, opcode=websocket.ABNF.OPCODE_TEXT):
        try:
            self._ws.send(data, opcode)
        except (websocket.WebSocketException, OSError) as e:
            error = TransportError(f"Send failed: {e}")
            self._fail(error)
            raise error from e

    def _flush(self):
        while self._pending and self._state is ChannelState.OPEN and not self._paused:
            chunk = self._pending.popleft()
            self._send(chunk, websocket.ABNF.OPCODE_BINARY)

    def _transition(self, new_state: ChannelState):
        with self._lock:
            previous = self._state
            if previous.is_terminal or previous is new_state:
                return

            self._state = new_state
            logger.debug(f'Channel state {previous.value} -> {new_state.value}')
            self._emit(StateChangedEvent(previous=previous, state=new_state))

            if previous is ChannelState.CONNECTING:
                self._handshake_done.set()

            if new_state.is_terminal:
                if self._close_timer is not None:
                    self._close_timer.cancel()
                self._pending.clear()

    def _fail(self, error: TransportError):
        with self._lock:
            if self._state.is_terminal:
                return
            self._emit(ErrorEvent(
                message=str(error),
                payload=None,
                error=error,
                terminal=True,
            ))
            self._transition(ChannelState.ERRORED)

        self._close_socket()

    def _close_socket(self):
        try:
            self._ws.close()
        except (websocket.WebSocketException, OSError) as e:
            logger.debug(f'Error while closing connection: {e}')

    def _emit(self, event: RecognitionEvent):
        with self._lock:
            self._events.put(event)
            if self._on_event is not None:
                self._callback_backlog.append(event)

    @contextmanager
    def _delivering_events(self):
        """Run the event callback for everything emitted inside the block, once it exits."""
        try:
            yield
        finally:
            self._deliver_events()

    def _deliver_events(self):
        # Whoever holds the callback lock drains the backlog; the loop picks
        # up events appended just before that thread let go of it. The end of
        # the stream is only signalled once the terminal event was delivered.
        while self._callback_backlog:
            if not self._callback_lock.acquire(blocking=False):
                return
            try:
                while self._callback_backlog:
                    event = self._callback_backlog.popleft()
                    try:
                        self._on_event(event)
                    except Exception as e:
                        logger.exception(f'Error in event callback: {e}')
            finally:
                self._callback_lock.release()

        with self._lock:
            if self._state.is_terminal and not self._terminated.is_set():
                self._events.put(_END_OF_EVENTS)
                self._terminated.set()
