"""
Base class for providers that sit on a persistent, event driven connection.
"""
import abc
import asyncio
import json
from collections.abc import Callable, Hashable, Sequence
from typing import Any

import structlog

from ..config import Config, ProviderConfig
from ..events import EventRegistry, ListenerHandle
from ..exceptions import SubscriptionError
from ..models.jsonrpc import SubscriptionRecord

logger = structlog.get_logger(__name__)


class AbstractSocketProvider(abc.ABC):
    """
    Common behaviour of socket providers: internal event notifications,
    routing of incoming messages, connection lifecycle handlers and
    subscription bookkeeping.

    Subclasses own the binding between the transport's events and the
    `on_*` handlers below (`register_event_listeners`, `remove_all_listeners`)
    and implement request dispatch.
    """

    READY = "ready"
    CONNECT = "connect"
    ERROR = "error"
    CLOSE = "close"

    SOCKET_MESSAGE = "socket_message"
    SOCKET_READY = "socket_ready"
    SOCKET_CLOSE = "socket_close"
    SOCKET_ERROR = "socket_error"
    SOCKET_CONNECT = "socket_connect"
    SOCKET_NETWORK_CHANGED = "socket_networkChanged"
    SOCKET_ACCOUNTS_CHANGED = "socket_accountsChanged"

    def __init__(self, connection: Any, config: Config | None = None):
        self.connection = connection
        self.config = config or Config()
        self.provider_config: ProviderConfig = self.config.provider
        self.host = self.provider_config.host
        self.subscriptions: dict[str, SubscriptionRecord] = {}

        self._events = EventRegistry(name=f"provider-{self.host}")
        self._background_tasks: set[asyncio.Task] = set()
        self.logger = logger.bind(provider=type(self).__name__, host=self.host)

        self.register_event_listeners()

    def supports_subscriptions(self) -> bool:
        return True

    @abc.abstractmethod
    def register_event_listeners(self) -> None:
        """Binds the transport's events to the `on_*` handlers."""
        pass

    @abc.abstractmethod
    async def send(self, method: str, parameters: Sequence[Any] | None = None) -> Any:
        pass

    # Internal notifications

    def on(self, event: Hashable, listener: Callable[..., Any]) -> ListenerHandle:
        return self._events.subscribe(event, listener)

    def once(self, event: Hashable, listener: Callable[..., Any]) -> ListenerHandle:
        return self._events.subscribe(event, listener, once=True)

    def off(self, handle: ListenerHandle) -> bool:
        return self._events.unsubscribe(handle)

    def emit(self, event: Hashable, *args: Any) -> bool:
        return self._events.emit(event, *args)

    def listener_count(self, event: Hashable) -> int:
        return self._events.listener_count(event)

    def remove_all_listeners(self, event: Hashable | None = None) -> None:
        """Removes internal listeners of `event`, or every internal listener when called without one."""
        if event is None:
            self._events.clear()
        else:
            self._events.remove_all(event)

    def remove_all_socket_listeners(self) -> None:
        for category in (self.SOCKET_MESSAGE, self.SOCKET_READY, self.SOCKET_CLOSE, self.SOCKET_ERROR, self.SOCKET_CONNECT):
            self.remove_all_listeners(category)

    def reset(self) -> None:
        self.remove_all_socket_listeners()
        self.remove_all_listeners()
        self.register_event_listeners()

    # Transport event handlers

    def on_message(self, response: Any) -> None:
        """
        Routes an incoming message. Responses are emitted under their id (a
        batch under its first element's id), subscription notifications under
        the subscription's event name with `params` as the payload.
        """
        if isinstance(response, (str, bytes)):
            response = json.loads(response)

        if isinstance(response, list):
            event = response[0].get("id") if response else None
        elif response.get("id") is None and isinstance(response.get("params"), dict):
            event = self.get_subscription_event(response["params"].get("subscription"))
            response = response["params"]
        else:
            event = response.get("id")

        self.emit(self.SOCKET_MESSAGE, response)
        if event is not None:
            self.emit(event, response)

    def on_ready(self, event: Any = None) -> None:
        self.emit(self.READY, event)
        self.emit(self.SOCKET_READY, event)

    def on_error(self, error: Exception) -> None:
        self.logger.warning("Connection reported an error.", error=str(error), error_type=type(error).__name__)
        self.emit(self.ERROR, error)
        self.emit(self.SOCKET_ERROR, error)
        self.remove_all_socket_listeners()

    def on_close(self, error: Exception | None = None) -> None:
        self.logger.info("Connection closed.", error=str(error) if error else None)
        self.emit(self.CLOSE, error)
        self.emit(self.SOCKET_CLOSE, error)
        self.remove_all_socket_listeners()
        self.remove_all_listeners()

    def on_connect(self) -> None:
        """
        Announces the connection. Live subscriptions are re-issued first, in
        a background task, so `connect` listeners see them restored.
        """
        if not self.subscriptions:
            self._emit_connect()
            return

        task = asyncio.get_running_loop().create_task(self._resubscribe())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _emit_connect(self) -> None:
        self.emit(self.SOCKET_CONNECT)
        self.emit(self.CONNECT)

    async def _resubscribe(self) -> None:
        try:
            # Records stay under their original keys; only their node ids change.
            for key, record in list(self.subscriptions.items()):
                record.id = await self._open_subscription(record.subscribe_method, record.parameters)
                self.logger.debug("Resubscribed.", subscription_event=key, subscription_id=record.id)
        except SubscriptionError as e:
            self.logger.error("Resubscription failed.", error=str(e))
            self.emit(self.ERROR, e)
            return
        self._emit_connect()

    # Subscriptions

    async def subscribe(
        self,
        subscription_method: str,
        parameters: Sequence[Any] | None = None,
        subscribe_method: str | None = None,
    ) -> str:
        """
        Opens a subscription and returns its id. Notifications are emitted
        under that id.
        Args:
            subscription_method: What to subscribe to, e.g. "newHeads".
            parameters: Extra arguments for the subscription.
            subscribe_method: RPC method to call. Defaults to the configured one.
        """
        subscribe_method = subscribe_method or self.provider_config.subscribe_method
        params = [subscription_method, *(parameters or [])]
        subscription_id = await self._open_subscription(subscribe_method, params)

        self.subscriptions[subscription_id] = SubscriptionRecord(
            id=subscription_id,
            subscribe_method=subscribe_method,
            parameters=params,
        )
        self.logger.debug("Subscribed.", subscription_id=subscription_id, subscription_method=subscription_method)
        return subscription_id

    async def _open_subscription(self, subscribe_method: str, params: list[Any]) -> str:
        try:
            return await self.send(subscribe_method, params)
        except Exception as e:
            self.logger.warning("Subscription failed.", subscribe_method=subscribe_method, error=str(e))
            raise SubscriptionError(f"Provider error: {e}") from e

    async def unsubscribe(self, subscription_id: str, unsubscribe_method: str | None = None) -> Any:
        event = self.get_subscription_event(subscription_id)
        if event is None:
            raise SubscriptionError(f"Provider error: Subscription with ID {subscription_id} does not exist.")

        response = await self.send(unsubscribe_method or self.provider_config.unsubscribe_method, [subscription_id])
        if response:
            self.remove_all_listeners(event)
            del self.subscriptions[event]
        return response

    async def clear_subscriptions(self, unsubscribe_method: str | None = None) -> bool:
        unsubscribe_calls = []
        for key, record in list(self.subscriptions.items()):
            self.remove_all_listeners(key)
            unsubscribe_calls.append(self.unsubscribe(record.id, unsubscribe_method))

        results = await asyncio.gather(*unsubscribe_calls)
        if not all(results):
            raise SubscriptionError(f"Could not unsubscribe all subscriptions: {json.dumps(results, default=str)}")
        return True

    def has_subscription(self, subscription_id: str) -> bool:
        return self.get_subscription_event(subscription_id) is not None

    def get_subscription_event(self, subscription_id: str | None) -> str | None:
        """
        Maps a node's subscription id onto the event name listeners were given.
        Current node ids win over event names: after a node restart a new id
        may equal another subscription's original key.
        """
        for key, record in self.subscriptions.items():
            if record.id == subscription_id:
                return key
        if subscription_id in self.subscriptions:
            return subscription_id
        return None
