"""
Pydantic models for the RPC Bridge project.
"""
from .common import BasePydanticModel
from .jsonrpc import JsonRpcErrorObject, JsonRpcRequest, SubscriptionRecord

__all__ = [
    "BasePydanticModel",
    "JsonRpcErrorObject",
    "JsonRpcRequest",
    "SubscriptionRecord",
]
