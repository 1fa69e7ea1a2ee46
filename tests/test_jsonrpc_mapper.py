"""Tests for JsonRpcMapper."""
import pytest

from rpc_bridge.exceptions import JsonRpcPayloadError
from rpc_bridge.mappers import JsonRpcMapper


def test_to_payload_builds_jsonrpc_request():
    payload = JsonRpcMapper.to_payload("eth_getBalance", ("0xabc", "latest"))

    assert payload["jsonrpc"] == "2.0"
    assert payload["method"] == "eth_getBalance"
    assert payload["params"] == ["0xabc", "latest"]
    assert isinstance(payload["id"], int)
    assert set(payload) == {"jsonrpc", "id", "method", "params"}


def test_to_payload_defaults_params_to_empty_list():
    assert JsonRpcMapper.to_payload("eth_blockNumber")["params"] == []
    assert JsonRpcMapper.to_payload("eth_blockNumber", None)["params"] == []


def test_ids_strictly_increase():
    ids = [JsonRpcMapper.to_payload("net_version")["id"] for _ in range(5)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 5


@pytest.mark.parametrize("method", ["", None])
def test_to_payload_requires_method(method):
    with pytest.raises(JsonRpcPayloadError, match="JSONRPC method should be specified for params"):
        JsonRpcMapper.to_payload(method, [1])


def test_payload_error_is_a_value_error():
    with pytest.raises(ValueError):
        JsonRpcMapper.to_payload("", [])
