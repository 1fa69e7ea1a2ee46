"""
Validation of raw JSON-RPC responses.
"""
import json
from typing import Any

from pydantic import ValidationError

from ..exceptions import JsonRpcNodeError, JsonRpcValidationError, RpcBridgeError
from ..models.jsonrpc import JsonRpcErrorObject


class JsonRpcResponseValidator:

    @staticmethod
    def validate(response: Any, payload: dict[str, Any] | None = None) -> RpcBridgeError | bool:
        """
        Classifies a raw response. Returns True for a usable response and an
        exception instance otherwise; it never raises, the caller decides.
        Args:
            response: The decoded response object.
            payload: The originating request. When given, the response id must match it.
        """
        if not isinstance(response, dict):
            return JsonRpcValidationError("Validation error: Response should be of type Object")

        error = response.get("error")
        if error:
            return JsonRpcResponseValidator._node_error(error)

        if payload is not None and response.get("id") != payload.get("id"):
            return JsonRpcValidationError(
                f"Validation error: Invalid JSON-RPC response ID (request: {payload.get('id')} / response: {response.get('id')})"
            )

        if "result" not in response:
            return JsonRpcValidationError("Validation error: Undefined JSON RPC result")

        return True

    @staticmethod
    def _node_error(error: Any) -> JsonRpcNodeError:
        if isinstance(error, Exception):
            return JsonRpcNodeError(f"Node error: {error}")

        message = f"Node error: {json.dumps(error, default=str)}"
        if isinstance(error, dict):
            try:
                err = JsonRpcErrorObject.model_validate(error)
            except ValidationError: # e.g. a non-integer code
                return JsonRpcNodeError(message)
            return JsonRpcNodeError(message, error_code=err.code, error_data=err.data)

        return JsonRpcNodeError(message)
