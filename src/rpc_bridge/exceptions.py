"""
Custom exceptions for RPC Bridge.
"""
from typing import Any, Optional

class RpcBridgeError(Exception):
    """Base class for all RPC Bridge errors."""
    pass

class TransportError(RpcBridgeError):
    """Raised when a transport reports a failure that is not itself an exception."""
    def __init__(self, message: str, error: Optional[Any] = None):
        super().__init__(message)
        self.error = error

class ProviderConnectionError(TransportError):
    """Raised when the underlying socket is not connected or was closed."""
    pass

class JsonRpcValidationError(RpcBridgeError):
    """Raised for malformed JSON-RPC responses (wrong type, id mismatch, missing result)."""
    pass

class JsonRpcNodeError(RpcBridgeError):
    """Raised when the node answers with a JSON-RPC error object."""
    def __init__(self, message: str, error_code: Optional[int] = None, error_data: Optional[Any] = None):
        super().__init__(message)
        self.error_code = error_code
        self.error_data = error_data

class JsonRpcPayloadError(RpcBridgeError, ValueError):
    """Raised when a JSON-RPC request payload cannot be built."""
    pass

class SubscriptionError(RpcBridgeError):
    """Raised for subscription management failures."""
    pass
