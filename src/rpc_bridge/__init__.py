"""RPC Bridge - JSON-RPC provider over persistent, event driven connections.

Submits single and batched JSON-RPC requests over an IPC socket or an
injected transport and correlates their asynchronous responses.
"""

__version__ = "0.1.0"

from .config import Config
from .providers import AbstractSocketProvider, InjectedSocketProvider
from .transports import IpcTransport

__all__ = ["AbstractSocketProvider", "Config", "InjectedSocketProvider", "IpcTransport"]
