from .jsonrpc_mapper import JsonRpcMapper

__all__ = ["JsonRpcMapper"]
