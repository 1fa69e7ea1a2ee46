"""
Shared fixtures: an in-memory transport the providers can be built on.
"""
import pytest

from rpc_bridge.config import Config, ProviderConfig
from rpc_bridge.events import EventRegistry
from rpc_bridge.providers import InjectedSocketProvider


class FakeTransport:
    """
    Records every send and listener binding. With a `responder` set, `send`
    answers synchronously with `responder(payload) -> (error, response)`;
    otherwise tests complete the stored callbacks themselves.
    """

    def __init__(self):
        self.events = EventRegistry(name="fake-transport")
        self.connected = True
        self.sent = []
        self.unsubscribed = []
        self.responder = None

    def send(self, payload, callback):
        self.sent.append((payload, callback))
        if self.responder is not None:
            error, response = self.responder(payload)
            callback(error, response)

    def is_connected(self):
        return self.connected

    def subscribe(self, event, listener):
        return self.events.subscribe(event, listener)

    def unsubscribe(self, handle):
        self.unsubscribed.append(handle)
        return self.events.unsubscribe(handle)

    def fire(self, event, *args):
        return self.events.emit(event, *args)

    def listener_count(self, event):
        return self.events.listener_count(event)


@pytest.fixture
def transport():
    return FakeTransport()

@pytest.fixture
def app_config():
    return Config(provider=ProviderConfig(host="test-node"))

@pytest.fixture
def provider(transport, app_config):
    return InjectedSocketProvider(transport, app_config)
