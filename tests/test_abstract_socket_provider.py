"""
Tests for the behaviour shared by socket providers: message routing,
lifecycle handlers and subscriptions.
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from rpc_bridge.exceptions import SubscriptionError
from rpc_bridge.models.jsonrpc import SubscriptionRecord


def _respond_with(results_by_method):
    def responder(payload):
        result = results_by_method[payload["method"]]
        if isinstance(result, Exception):
            return None, {"jsonrpc": "2.0", "id": payload["id"], "error": {"code": -32601, "message": str(result)}}
        return None, {"jsonrpc": "2.0", "id": payload["id"], "result": result}
    return responder


def test_on_message_emits_socket_message_and_id(provider):
    on_message = MagicMock()
    on_id = MagicMock()
    provider.on(provider.SOCKET_MESSAGE, on_message)
    provider.on(12, on_id)

    provider.on_message('{"jsonrpc": "2.0", "id": 12, "result": "0x0"}')

    expected = {"jsonrpc": "2.0", "id": 12, "result": "0x0"}
    on_message.assert_called_once_with(expected)
    on_id.assert_called_once_with(expected)


def test_on_message_routes_batch_by_first_id(provider):
    on_id = MagicMock()
    provider.on(3, on_id)
    batch = [{"id": 3, "result": 1}, {"id": 4, "result": 2}]

    provider.on_message(batch)

    on_id.assert_called_once_with(batch)


def test_on_message_routes_notification_to_subscription_key(provider):
    # Resubscribed: the node now knows this subscription as 0xnew
    provider.subscriptions["0xold"] = SubscriptionRecord(id="0xnew", subscribe_method="eth_subscribe", parameters=["newHeads"])
    on_notification = MagicMock()
    provider.on("0xold", on_notification)

    provider.on_message({
        "jsonrpc": "2.0",
        "method": "eth_subscription",
        "params": {"subscription": "0xnew", "result": {"number": "0x1b4"}},
    })

    on_notification.assert_called_once_with({"subscription": "0xnew", "result": {"number": "0x1b4"}})


def test_notification_for_unknown_subscription_only_emits_socket_message(provider):
    on_message = MagicMock()
    provider.on(provider.SOCKET_MESSAGE, on_message)

    provider.on_message({"jsonrpc": "2.0", "method": "eth_subscription", "params": {"subscription": "0xgone", "result": 1}})

    on_message.assert_called_once()


def test_on_error_notifies_and_unbinds_transport(provider, transport):
    on_error = MagicMock()
    on_socket_error = MagicMock()
    provider.on(provider.ERROR, on_error)
    provider.on(provider.SOCKET_ERROR, on_socket_error)
    error = OSError("broken pipe")

    transport.fire("error", error)

    on_error.assert_called_once_with(error)
    on_socket_error.assert_called_once_with(error)
    assert all(transport.listener_count(event) == 0 for event in ("data", "error", "connect", "end"))


def test_on_close_clears_every_listener(provider, transport):
    on_close = MagicMock()
    provider.on(provider.CLOSE, on_close)
    provider.on(99, MagicMock())

    transport.fire("end")

    on_close.assert_called_once_with(None)
    assert provider.listener_count(provider.CLOSE) == 0
    assert provider.listener_count(99) == 0
    assert all(transport.listener_count(event) == 0 for event in ("data", "error", "connect", "end"))


def test_reset_rebinds_transport_listeners(provider, transport):
    transport.fire("end")
    provider.on("stale", MagicMock())

    provider.reset()

    assert provider.listener_count("stale") == 0
    assert all(transport.listener_count(event) == 1 for event in ("data", "error", "connect", "end"))


def test_reset_on_live_provider_does_not_duplicate(provider, transport):
    provider.reset()
    assert all(transport.listener_count(event) == 1 for event in ("data", "error", "connect", "end"))


@pytest.mark.asyncio
async def test_subscribe_records_subscription(provider, transport):
    transport.responder = _respond_with({"eth_subscribe": "0xabc"})

    subscription_id = await provider.subscribe("logs", [{"address": "0x1"}])

    assert subscription_id == "0xabc"
    payload, _ = transport.sent[0]
    assert payload["method"] == "eth_subscribe"
    assert payload["params"] == ["logs", {"address": "0x1"}]
    record = provider.subscriptions["0xabc"]
    assert record.subscribe_method == "eth_subscribe"
    assert record.parameters == ["logs", {"address": "0x1"}]
    assert provider.has_subscription("0xabc")


@pytest.mark.asyncio
async def test_subscribe_wraps_failures(provider, transport):
    transport.responder = _respond_with({"shh_subscribe": ValueError("method not found")})

    with pytest.raises(SubscriptionError, match="^Provider error: Node error"):
        await provider.subscribe("messages", subscribe_method="shh_subscribe")

    assert provider.subscriptions == {}


@pytest.mark.asyncio
async def test_unsubscribe_unknown_subscription(provider):
    with pytest.raises(SubscriptionError, match="Subscription with ID 0xmissing does not exist"):
        await provider.unsubscribe("0xmissing")


@pytest.mark.asyncio
async def test_unsubscribe_forgets_subscription(provider, transport):
    transport.responder = _respond_with({"eth_subscribe": "0xabc", "eth_unsubscribe": True})
    await provider.subscribe("newHeads")
    provider.on("0xabc", MagicMock())

    assert await provider.unsubscribe("0xabc") is True

    assert not provider.has_subscription("0xabc")
    assert provider.listener_count("0xabc") == 0
    payload, _ = transport.sent[-1]
    assert payload["method"] == "eth_unsubscribe"
    assert payload["params"] == ["0xabc"]


@pytest.mark.asyncio
async def test_unsubscribe_keeps_subscription_on_false_response(provider, transport):
    transport.responder = _respond_with({"eth_subscribe": "0xabc", "eth_unsubscribe": False})
    await provider.subscribe("newHeads")

    assert await provider.unsubscribe("0xabc") is False
    assert provider.has_subscription("0xabc")


@pytest.mark.asyncio
async def test_clear_subscriptions(provider, transport):
    ids = iter(["0x1", "0x2"])
    transport.responder = lambda payload: (None, {
        "id": payload["id"],
        "result": next(ids) if payload["method"] == "eth_subscribe" else True,
    })
    await provider.subscribe("newHeads")
    await provider.subscribe("logs")

    assert await provider.clear_subscriptions() is True
    assert provider.subscriptions == {}


@pytest.mark.asyncio
async def test_clear_subscriptions_raises_when_one_fails(provider, transport):
    transport.responder = _respond_with({"eth_subscribe": "0x1", "eth_unsubscribe": False})
    await provider.subscribe("newHeads")

    with pytest.raises(SubscriptionError, match="Could not unsubscribe all subscriptions"):
        await provider.clear_subscriptions()


@pytest.mark.asyncio
async def test_connect_resubscribes_before_announcing(provider, transport):
    provider.subscriptions["0xold"] = SubscriptionRecord(id="0xold", subscribe_method="eth_subscribe", parameters=["newHeads"])
    transport.responder = _respond_with({"eth_subscribe": "0xnew"})
    on_connect = MagicMock(side_effect=lambda: assert_resubscribed())
    provider.on(provider.CONNECT, on_connect)

    def assert_resubscribed():
        assert provider.subscriptions["0xold"].id == "0xnew"

    transport.fire("connect")
    await asyncio.gather(*provider._background_tasks)

    on_connect.assert_called_once_with()
    assert list(provider.subscriptions) == ["0xold"]
    assert provider.get_subscription_event("0xnew") == "0xold"
    payload, _ = transport.sent[0]
    assert payload["params"] == ["newHeads"]


@pytest.mark.asyncio
async def test_failed_resubscription_emits_error_instead_of_connect(provider, transport):
    provider.subscriptions["0xold"] = SubscriptionRecord(id="0xold", subscribe_method="eth_subscribe", parameters=["newHeads"])
    transport.responder = _respond_with({"eth_subscribe": RuntimeError("filter not found")})
    on_connect = MagicMock()
    on_error = MagicMock()
    provider.on(provider.CONNECT, on_connect)
    provider.on(provider.ERROR, on_error)

    transport.fire("connect")
    await asyncio.gather(*provider._background_tasks)

    on_connect.assert_not_called()
    assert isinstance(on_error.call_args.args[0], SubscriptionError)


@pytest.mark.asyncio
async def test_resubscribe_survives_swapped_ids_after_node_restart(provider, transport):
    provider.subscriptions["0x1"] = SubscriptionRecord(id="0x1", subscribe_method="eth_subscribe", parameters=["newHeads"])
    provider.subscriptions["0x2"] = SubscriptionRecord(id="0x2", subscribe_method="eth_subscribe", parameters=["logs"])
    new_ids = iter(["0x2", "0x1"])
    transport.responder = lambda payload: (None, {"jsonrpc": "2.0", "id": payload["id"], "result": next(new_ids)})
    on_connect = MagicMock()
    on_error = MagicMock()
    on_heads = MagicMock()
    provider.on(provider.CONNECT, on_connect)
    provider.on(provider.ERROR, on_error)
    provider.on("0x1", on_heads)

    transport.fire("connect")
    results = await asyncio.gather(*provider._background_tasks, return_exceptions=True)

    assert results == [None]
    on_error.assert_not_called()
    on_connect.assert_called_once_with()
    assert {key: record.id for key, record in provider.subscriptions.items()} == {"0x1": "0x2", "0x2": "0x1"}
    assert provider.subscriptions["0x1"].parameters == ["newHeads"]
    assert provider.subscriptions["0x2"].parameters == ["logs"]

    # newHeads notifications now carry the node's new id 0x2
    provider.on_message({"jsonrpc": "2.0", "method": "eth_subscription", "params": {"subscription": "0x2", "result": {}}})
    on_heads.assert_called_once_with({"subscription": "0x2", "result": {}})
