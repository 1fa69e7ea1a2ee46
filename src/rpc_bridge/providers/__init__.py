"""
Socket providers.

A provider turns a persistent, event driven transport into awaitable
JSON-RPC calls, batches and subscriptions.
"""

from .abstract_socket_provider import AbstractSocketProvider
from .injected_socket_provider import InjectedSocketProvider

__all__ = [
    "AbstractSocketProvider",
    "InjectedSocketProvider",
]
