"""
Transport contract expected by the socket providers.
"""
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

# callback(error, response); exactly one of the two is meaningful.
SendCallback = Callable[[Any, Any], None]

DATA = "data"
ERROR = "error"
CONNECT = "connect"
END = "end"

TRANSPORT_EVENTS = (DATA, ERROR, CONNECT, END)


@runtime_checkable
class Transport(Protocol):
    """
    A persistent, event driven connection to a JSON-RPC node.

    Events: `data` (decoded response), `error` (exception), `connect` and
    `end` (no arguments). The callback handed to `send` must be invoked at
    most once.
    """

    def send(self, payload: dict[str, Any] | list[dict[str, Any]], callback: SendCallback) -> None:
        ...

    def is_connected(self) -> bool:
        ...

    def subscribe(self, event: str, listener: Callable[..., Any]) -> Any:
        """Binds `listener` to `event` and returns an opaque handle."""
        ...

    def unsubscribe(self, handle: Any) -> bool:
        ...
