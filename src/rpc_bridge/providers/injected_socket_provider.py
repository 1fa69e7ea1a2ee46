"""
Socket provider over an injected, always connected transport.
"""
import asyncio
from collections.abc import Hashable, Sequence
from typing import Any

from ..config import Config
from ..exceptions import TransportError
from ..mappers import JsonRpcMapper
from ..methods import AbstractMethod
from ..transports.base import CONNECT, DATA, END, ERROR, Transport
from ..validators import JsonRpcResponseValidator
from .abstract_socket_provider import AbstractSocketProvider


class InjectedSocketProvider(AbstractSocketProvider):
    """
    Provider for a transport object handed to us already connected, such as
    a host application's embedded node bridge. It never opens or closes the
    connection itself.

    Each transport event has exactly one listener bound to it. `connect`
    feeds both the `socket_connect` and `socket_ready` categories through a
    single listener, so removing either category unbinds it.
    """

    _CATEGORY_TRANSPORT_EVENTS = {
        AbstractSocketProvider.SOCKET_MESSAGE: DATA,
        AbstractSocketProvider.SOCKET_ERROR: ERROR,
        AbstractSocketProvider.SOCKET_CONNECT: CONNECT,
        AbstractSocketProvider.SOCKET_READY: CONNECT,
        AbstractSocketProvider.SOCKET_CLOSE: END,
    }

    def __init__(self, connection: Transport, config: Config | None = None):
        self._transport_handles: dict[str, Any] = {}
        super().__init__(connection, config)

    def register_event_listeners(self) -> None:
        bindings = {
            DATA: self.on_message,
            ERROR: self.on_error,
            CONNECT: self._on_transport_connect,
            END: self.on_close,
        }
        for transport_event, listener in bindings.items():
            if transport_event in self._transport_handles:
                self.logger.debug("Transport listener already bound.", transport_event=transport_event)
                continue
            self._transport_handles[transport_event] = self.connection.subscribe(transport_event, listener)

    def _on_transport_connect(self) -> None:
        self.on_connect()
        self.on_ready()

    def remove_category_listener(self, category: Hashable) -> bool:
        """
        Unbinds the transport listener behind a logical category. Returns
        False for tokens that are not a category.
        """
        transport_event = self._CATEGORY_TRANSPORT_EVENTS.get(category)
        if transport_event is None:
            return False

        handle = self._transport_handles.pop(transport_event, None)
        if handle is not None:
            self.connection.unsubscribe(handle)
            self.logger.debug("Transport listener removed.", category=category, transport_event=transport_event)
        return True

    def remove_all_listeners(self, event: Hashable | None = None) -> None:
        """
        Unbinds the transport listener if `event` is a category, then drops
        the internal listeners registered under `event`.
        """
        if event is not None:
            self.remove_category_listener(event)
        super().remove_all_listeners(event)

    def clear_pending_cleanup(self, request_id: Hashable | None) -> None:
        """Drops internal listeners keyed by a finished request's id."""
        if request_id is None:
            return
        self._events.remove_all(request_id)

    def disconnect(self) -> bool:
        return True

    @property
    def connected(self) -> bool:
        return self.connection.is_connected()

    async def send(self, method: str, parameters: Sequence[Any] | None = None) -> Any:
        """
        Sends a single JSON-RPC request and returns its `result`.
        Raises the validator's error for RPC-level errors and malformed responses.
        """
        payload = JsonRpcMapper.to_payload(method, parameters)
        response = await self.send_payload(payload)

        validation_result = JsonRpcResponseValidator.validate(response)
        if isinstance(validation_result, Exception):
            self.logger.debug("Response failed validation.", method=method, request_id=payload["id"], error=str(validation_result))
            raise validation_result

        return response["result"]

    async def send_batch(self, methods: Sequence[AbstractMethod], module_instance: Any) -> list[Any]:
        """
        Sends several methods as one JSON-RPC batch and returns the raw
        response list. Per element validation is left to the caller.
        """
        payload = []
        for method in methods:
            method.before_execution(module_instance)
            payload.append(JsonRpcMapper.to_payload(method.rpc_method, method.parameters))

        return await self.send_payload(payload)

    async def send_payload(self, payload: dict[str, Any] | list[dict[str, Any]]) -> Any:
        """
        Hands a payload to the transport and waits for its completion
        callback. No timeout: if the transport never calls back, neither do we.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        # Batches have no id of their own.
        request_id = payload.get("id") if isinstance(payload, dict) else None
        log = self.logger.bind(request_id=request_id, batch=isinstance(payload, list))

        def on_complete(error: Any, response: Any = None) -> None:
            self.clear_pending_cleanup(request_id)

            if future.done():
                log.warning("Completion for a settled request ignored.", cancelled=future.cancelled())
                return
            if not error:
                future.set_result(response)
            elif isinstance(error, BaseException):
                future.set_exception(error)
            else:
                future.set_exception(TransportError(f"Transport error: {error}", error=error))

        log.debug("Sending payload.")
        self.connection.send(payload, on_complete)
        return await future
