from .jsonrpc_response_validator import JsonRpcResponseValidator

__all__ = ["JsonRpcResponseValidator"]
