"""
Transports the socket providers can be built on.
"""
from .base import CONNECT, DATA, END, ERROR, TRANSPORT_EVENTS, SendCallback, Transport
from .ipc import IpcTransport

__all__ = [
    "CONNECT",
    "DATA",
    "END",
    "ERROR",
    "IpcTransport",
    "SendCallback",
    "TRANSPORT_EVENTS",
    "Transport",
]
