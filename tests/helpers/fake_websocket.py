import json
import logging
import threading

import websocket

logger = logging.getLogger(__name__)


class FakeWebSocketApp:
    """Stand-in for `websocket.WebSocketApp` used by channel tests.

    `run_forever` blocks until the socket is closed, by either side, and then
    reports the closure through `on_close` like the real client does. Tests
    drive the other callbacks with `open()`, `receive()`, `error()` and
    `remote_close()`. Like the real client, an exception raised by a callback
    is logged and handed to `on_error`.
    """

    def __init__(self, url, header=None, on_open=None, on_message=None, on_error=None, on_close=None):
        self.url = url
        self.header = header
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close

        self.sent = []
        self.run_kwargs = None
        self.close_calls = 0
        self.fail_send = False
        self.ignore_close = False
        self.callback_errors = []

        self.started = threading.Event()
        self._closed = threading.Event()
        self._close_status_code = None
        self._close_msg = None

    def run_forever(self, **kwargs):
        self.run_kwargs = kwargs
        self.started.set()
        self._closed.wait()
        self._callback(self.on_close, self._close_status_code, self._close_msg)

    def send(self, data, opcode=websocket.ABNF.OPCODE_TEXT):
        if self.fail_send:
            raise websocket.WebSocketConnectionClosedException("socket is already closed.")
        self.sent.append((data, opcode))

    def close(self, **kwargs):
        self.close_calls += 1
        if not self.ignore_close:
            self._closed.set()

    def _callback(self, callback, *args):
        if callback:
            try:
                callback(self, *args)
            except Exception as e:
                logger.error(f"error from callback {callback}: {e}")
                self.callback_errors.append(e)
                if self.on_error:
                    self.on_error(self, e)

    # Test controls -------------------------------------------------------------
    def open(self):
        self._callback(self.on_open)

    def receive(self, message):
        if isinstance(message, dict):
            message = json.dumps(message)
        self._callback(self.on_message, message)

    def error(self, error):
        self._callback(self.on_error, error)

    def remote_close(self, code=1000, reason=""):
        self._close_status_code = code
        self._close_msg = reason
        self._closed.set()

    @property
    def text_messages(self):
        return [json.loads(data) for data, opcode in self.sent if opcode == websocket.ABNF.OPCODE_TEXT]

    @property
    def audio_frames(self):
        return [data for data, opcode in self.sent if opcode == websocket.ABNF.OPCODE_BINARY]
