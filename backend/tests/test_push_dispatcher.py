"""
Tests for the NotificationDispatcher: concurrent fan-out, tally, pruning.
"""
import asyncio
import json
import threading

import pytest
from pywebpush import WebPushException

from moodapp.core.exceptions import NotFoundGone, TransientDeliveryError
from moodapp.services.push_dispatcher import (
    DispatchResult,
    NotificationDispatcher,
    NotificationPayload,
    PushConfig,
    classify_push_error,
)

KEYS = {"p256dh": "p256dh", "auth": "auth"}


def _endpoint(n: int) -> str:
    return f"https://push.example.com/send/{n}"


async def _seed(store, n: int):
    for i in range(n):
        await store.upsert(_endpoint(i), KEYS)
    return await store.list_all()


def _payload() -> NotificationPayload:
    return NotificationPayload(title="Mood Update", body="hello", tag="mood-update", data={"url": "/"})


@pytest.mark.asyncio
async def test_gone_subscription_is_pruned(store, dispatcher, push_service):
    """3 subscriptions, 1 reports 410 → 2 successes, 1 failure, pruned from store."""
    subs = await _seed(store, 3)
    push_service.status_by_endpoint[_endpoint(1)] = 410

    result = await dispatcher.dispatch(subs, _payload())

    assert result.success_count == 2
    assert result.failure_count == 1
    assert len(result.errors) == 1
    assert result.errors[0]["endpoint"] == _endpoint(1)
    assert "410" in result.errors[0]["error"]
    remaining = {s.endpoint for s in await store.list_all()}
    assert remaining == {_endpoint(0), _endpoint(2)}


@pytest.mark.asyncio
async def test_404_is_treated_as_gone(store, dispatcher, push_service):
    subs = await _seed(store, 2)
    push_service.status_by_endpoint[_endpoint(0)] = 404

    await dispatcher.dispatch(subs, _payload())

    assert [s.endpoint for s in await store.list_all()] == [_endpoint(1)]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 413, 429, 500, 503])
async def test_transient_failures_are_recorded_but_not_pruned(store, dispatcher, push_service, status):
    subs = await _seed(store, 2)
    push_service.status_by_endpoint[_endpoint(0)] = status

    result = await dispatcher.dispatch(subs, _payload())

    assert result.success_count == 1
    assert result.failure_count == 1
    assert len(await store.list_all()) == 2


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated(store, dispatcher, push_service):
    subs = await _seed(store, 3)
    push_service.crash_endpoints.add(_endpoint(2))

    result = await dispatcher.dispatch(subs, _payload())

    assert result.success_count == 2
    assert result.failure_count == 1
    assert "connection reset" in result.errors[0]["error"]
    assert len(await store.list_all()) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("total, gone", [(5, 2), (4, 0), (3, 3), (6, 1)])
async def test_exactly_k_gone_are_removed(store, dispatcher, push_service, total, gone):
    subs = await _seed(store, total)
    for i in range(gone):
        push_service.status_by_endpoint[_endpoint(i)] = 410

    result = await dispatcher.dispatch(subs, _payload())

    assert result.success_count + result.failure_count == total
    assert result.failure_count == gone
    assert len(await store.list_all()) == total - gone


@pytest.mark.asyncio
async def test_every_subscription_is_attempted(store, dispatcher, push_service):
    subs = await _seed(store, 4)
    push_service.status_by_endpoint[_endpoint(0)] = 500
    push_service.crash_endpoints.add(_endpoint(1))

    await dispatcher.dispatch(subs, _payload())

    assert sorted(push_service.endpoints) == sorted(_endpoint(i) for i in range(4))


@pytest.mark.asyncio
async def test_stalled_delivery_does_not_block_others(store, push_service):
    subs = await _seed(store, 3)
    release = threading.Event()

    def sender(subscription_info, **kwargs):
        if subscription_info["endpoint"] == _endpoint(0):
            release.wait(timeout=10)
        return push_service(subscription_info, **kwargs)

    config = PushConfig(public_key="pub", private_key="test-private-key", claims_sub="mailto:test@example.com")
    task = asyncio.create_task(NotificationDispatcher(store, config, sender).dispatch(subs, _payload()))

    for _ in range(200):
        if len(push_service.calls) == 2:
            break
        await asyncio.sleep(0.01)

    # die beiden anderen sind durch, dispatch wartet noch auf den hängenden
    assert sorted(push_service.endpoints) == [_endpoint(1), _endpoint(2)]
    assert not task.done()

    release.set()
    result = await asyncio.wait_for(task, timeout=5)

    assert result.success_count + result.failure_count == 3
    assert result.success_count == 3
    assert _endpoint(0) in push_service.endpoints


@pytest.mark.asyncio
async def test_payload_and_vapid_details_reach_sender(store, dispatcher, push_service):
    subs = await _seed(store, 1)

    await dispatcher.dispatch(subs, _payload())

    call = push_service.calls[0]
    assert call["subscription_info"] == {"endpoint": _endpoint(0), "keys": KEYS}
    assert call["vapid_private_key"] == "test-private-key"
    assert call["vapid_claims"] == {"sub": "mailto:test@example.com"}
    body = json.loads(call["data"])
    assert body["title"] == "Mood Update"
    assert body["icon"] == "/icon-192x192.png"
    assert body["badge"] == "/badge-72x72.png"
    assert "actions" not in body


@pytest.mark.asyncio
async def test_string_payload_is_passed_through(store, dispatcher, push_service):
    subs = await _seed(store, 1)
    await dispatcher.dispatch(subs, "raw text")
    assert push_service.calls[0]["data"] == "raw text"


@pytest.mark.asyncio
async def test_empty_subscription_list(dispatcher, push_service):
    result = await dispatcher.dispatch([], _payload())
    assert result.to_dict() == {"successCount": 0, "failureCount": 0, "errors": []}
    assert push_service.calls == []


def test_dispatcher_disabled_without_private_key(store):
    config = PushConfig(public_key="pub", private_key="", claims_sub="mailto:x@example.com")
    assert not NotificationDispatcher(store, config).enabled


def test_classify_webpush_exception_without_response():
    err = classify_push_error(WebPushException("boom"), "https://e")
    assert isinstance(err, TransientDeliveryError)
    assert err.status_code is None


def test_classify_410_as_gone():
    class _Resp:
        status_code = 410

    err = classify_push_error(WebPushException("gone", response=_Resp()), "https://e")
    assert isinstance(err, NotFoundGone)
    assert err.endpoint == "https://e"


def test_dispatch_result_total():
    result = DispatchResult(success_count=2, failure_count=1)
    assert result.total == 3
