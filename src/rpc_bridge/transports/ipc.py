"""
Transport over a local IPC (Unix domain) socket.
"""
import asyncio
import codecs
import json
import re
from pathlib import Path
from typing import Any

import structlog

from ..config import TransportConfig
from ..events import EventRegistry, ListenerHandle
from ..exceptions import JsonRpcPayloadError, ProviderConnectionError
from .base import CONNECT, DATA, END, ERROR, SendCallback

logger = structlog.get_logger(__name__)

# The cut-off start of a number or literal at the end of the buffer.
_PARTIAL_TOKEN = re.compile(r"[0-9.eE+-]+|t(?:r(?:ue?)?)?|f(?:a(?:l(?:se?)?)?)?|n(?:u(?:ll?)?)?")


def correlation_key(message: Any) -> Any:
    """The id a request or response is matched on. Batches use their first element."""
    if isinstance(message, list):
        return message[0].get("id") if message and isinstance(message[0], dict) else None
    if isinstance(message, dict):
        return message.get("id")
    return None


def _is_truncated(text: str, error: json.JSONDecodeError) -> bool:
    """True if `text` may still become valid JSON once more bytes arrive."""
    tail = text[error.pos:]
    if not tail.strip():
        return True
    # JSON strings cannot span lines, so a newline past the error ends the value.
    if "\n" in tail:
        return False
    if error.msg.startswith(("Unterminated string", "Invalid \\uXXXX escape")):
        return True
    return _PARTIAL_TOKEN.fullmatch(tail) is not None


def _resume_position(text: str, error_pos: int) -> int:
    """Where decoding picks up after a malformed value: the next line, else the next value start."""
    newline = text.find("\n", error_pos)
    if newline != -1:
        return newline + 1
    starts = [i for i in (text.find("{", max(error_pos, 1)), text.find("[", max(error_pos, 1))) if i != -1]
    return min(starts) if starts else len(text)


class IpcTransport:
    """
    Speaks JSON-RPC over a Unix domain socket, e.g. a node's `.ipc` file.

    Requests are written as JSON text. The node's replies arrive as a stream
    of concatenated JSON values (newline separated or not); every value is
    emitted as a `data` event and, if a `send` is waiting on its id, handed to
    that callback.
    """

    def __init__(self, path: str | Path, config: TransportConfig | None = None):
        self.path = Path(path)
        self.config = config or TransportConfig()
        self._events = EventRegistry(name=f"ipc-{self.path.name}")
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task | None = None
        self._callbacks: dict[Any, SendCallback] = {}
        self._json_decoder = json.JSONDecoder()
        self._buffer = ""
        self.logger = logger.bind(transport="ipc", path=str(self.path))

    async def connect(self) -> None:
        if self.is_connected():
            self.logger.debug("Already connected.")
            return
        try:
            self._reader, self._writer = await asyncio.open_unix_connection(str(self.path))
        except OSError as e:
            self.logger.error("Failed to open IPC socket.", error=str(e))
            raise ProviderConnectionError(f"Could not connect to IPC socket {self.path}: {e}", error=e) from e

        self._buffer = ""
        self._read_task = asyncio.create_task(self._read_loop(), name=f"ipc-reader-{self.path.name}")
        self.logger.info("IPC socket connected.")
        self._events.emit(CONNECT)

    async def close(self) -> None:
        """Closes the socket. Pending callbacks fail and `end` is emitted by the reader."""
        if self._writer is None:
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            self.logger.debug("Error while waiting for socket close.", error=str(e))
        if self._read_task is not None:
            await self._read_task

    def is_connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    def send(self, payload: dict[str, Any] | list[dict[str, Any]], callback: SendCallback) -> None:
        """
        Writes `payload` and registers `callback` for the response with the same id.

        `send` is synchronous, so the write is never drained: data the socket
        cannot take yet stays in the StreamWriter's buffer, which grows without
        bound if the node stops reading. Callers that need backpressure should
        bound the number of requests they keep in flight.
        """
        if not self.is_connected():
            callback(ProviderConnectionError(f"IPC socket {self.path} is not connected."), None)
            return

        key = correlation_key(payload)
        if key is None:
            callback(JsonRpcPayloadError("Payload has no id, a response could never be matched to it."), None)
            return
        if key in self._callbacks:
            callback(JsonRpcPayloadError(f"A request with id {key!r} is already in flight."), None)
            return

        self._callbacks[key] = callback
        self._writer.write(json.dumps(payload).encode(self.config.encoding))
        self.logger.debug("Wrote payload.", request_id=key, batch=isinstance(payload, list))

    def subscribe(self, event: str, listener) -> ListenerHandle:
        return self._events.subscribe(event, listener)

    def unsubscribe(self, handle: ListenerHandle) -> bool:
        return self._events.unsubscribe(handle)

    async def _read_loop(self) -> None:
        decoder = codecs.getincrementaldecoder(self.config.encoding)()
        error: Exception | None = None
        try:
            while True:
                chunk = await self._reader.read(self.config.read_chunk_size)
                if not chunk:
                    break
                self._buffer += decoder.decode(chunk)
                for message in self._drain_buffer():
                    self._dispatch(message)
        except (OSError, ValueError) as e: # ValueError covers UnicodeDecodeError
            error = e
            self.logger.error("IPC read failed.", error=str(e), error_type=type(e).__name__)
            self._notify(ERROR, e)
        finally:
            self._teardown(error)

    def _drain_buffer(self) -> list[Any]:
        messages = []
        while True:
            text = self._buffer.lstrip()
            if not text:
                self._buffer = ""
                break
            try:
                message, end = self._json_decoder.raw_decode(text)
            except json.JSONDecodeError as e:
                if _is_truncated(text, e):
                    self._buffer = text
                    break
                resume = _resume_position(text, e.pos)
                self.logger.warning("Discarding malformed data.", error=str(e), discarded_chars=resume)
                self._buffer = text[resume:]
                continue
            messages.append(message)
            self._buffer = text[end:]
        return messages

    def _dispatch(self, message: Any) -> None:
        self._notify(DATA, message)
        callback = self._callbacks.pop(correlation_key(message), None)
        if callback is not None:
            self._complete(callback, None, message)

    def _notify(self, event: str, *args: Any) -> None:
        """Emits `event`. A raising listener is logged and cannot stop the reader."""
        try:
            self._events.emit(event, *args)
        except Exception:
            self.logger.exception("Transport listener raised.", transport_event=event)

    def _complete(self, callback: SendCallback, error: Exception | None, response: Any) -> None:
        try:
            callback(error, response)
        except Exception:
            self.logger.exception("Send callback raised.", request_id=correlation_key(response))

    def _teardown(self, error: Exception | None) -> None:
        if self._writer is not None and not self._writer.is_closing():
            self._writer.close()
        self._writer = None
        self._reader = None
        pending, self._callbacks = self._callbacks, {}
        if pending:
            self.logger.warning("IPC connection closed with requests in flight.", pending=len(pending))
        for callback in pending.values():
            self._complete(callback, ProviderConnectionError(f"IPC connection to {self.path} closed.", error=error), None)
        self.logger.info("IPC socket closed.")
        self._notify(END)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
