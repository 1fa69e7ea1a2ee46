"""
Maps method names and parameters onto JSON-RPC 2.0 request payloads.
"""
import itertools
import json
from typing import Any, Sequence

from ..models.jsonrpc import JsonRpcRequest
from ..exceptions import JsonRpcPayloadError

# Process wide, ids are unique across providers.
_message_ids = itertools.count()


class JsonRpcMapper:

    @staticmethod
    def to_payload(method: str, params: Sequence[Any] | None = None) -> dict[str, Any]:
        """
        Creates a valid JSON-RPC request payload.
        Args:
            method: The JSON-RPC method name.
            params: Positional parameters for the method. Defaults to an empty list.
        Returns:
            The request as a plain dict, ready to hand to a transport.
        """
        if not method:
            raise JsonRpcPayloadError(f'JSONRPC method should be specified for params: "{json.dumps(params, default=str)}"!')

        request = JsonRpcRequest(id=next(_message_ids), method=method, params=list(params or []))
        return request.model_dump()
