"""Tests for the withdrawal state machine."""

import asyncio

from conftest import NOW, BrokenCache, FakeRemote, ScriptedTransport, make_delivery
from portaria.messaging.dispatcher import NotificationDispatcher
from portaria.models.delivery import DeliveryStatus
from portaria.models.notification import MessageType
from portaria.storage.delivery_store import DeliveryStore
from portaria.workflows.withdrawal import WithdrawalState, WithdrawalWorkflow


def run(coro):
    return asyncio.run(coro)


def test_malformed_code_stays_idle_without_store_io(store, remote, dispatcher):
    workflow = WithdrawalWorkflow(store, dispatcher)

    result = run(workflow.submit_code("12a4"))

    assert result.state == WithdrawalState.IDLE
    assert result.error_type == "ValidationError"
    assert remote.calls == []


def test_unknown_code_is_not_found(store, dispatcher):
    workflow = WithdrawalWorkflow(store, dispatcher)

    result = run(workflow.submit_code("99999"))

    assert result.state == WithdrawalState.NOT_FOUND
    assert result.error_type == "DeliveryNotFound"
    assert workflow.found is None


def test_search_trims_and_finds(store, remote, dispatcher):
    remote.add(make_delivery(code="12345"))
    workflow = WithdrawalWorkflow(store, dispatcher)

    result = run(workflow.submit_code(" 12345 "))

    assert result.state == WithdrawalState.FOUND
    assert result.ok
    assert result.delivery.pickup_code == "12345"
    assert "João Teste" in result.message


def test_confirm_commits_and_notifies(store, remote, dispatcher, transports):
    remote.add(make_delivery(code="12345"))
    workflow = WithdrawalWorkflow(store, dispatcher, condominium="Condomínio Teste")
    run(workflow.submit_code("12345"))

    result = run(workflow.confirm("Retirado pela vizinha"))

    assert result.state == WithdrawalState.COMMITTED
    assert result.ok
    assert result.warning is None
    assert result.outcome.channel == "webhook"
    assert result.delivery.status == DeliveryStatus.WITHDRAWN
    assert remote.rows[0]["descricao_retirada"] == "Retirado pela vizinha"
    sent = transports[0].sent[0]
    assert sent.type == MessageType.WITHDRAWAL
    assert sent.payload["descricao"] == "Retirado pela vizinha"
    # Ready for the next code
    assert workflow.state == WithdrawalState.IDLE
    assert workflow.found is None


def test_all_channels_failing_still_commits(store, remote):
    remote.add(make_delivery(code="12345"))
    chain = [ScriptedTransport(n, False) for n in ("webhook", "function", "direct")]
    workflow = WithdrawalWorkflow(store, NotificationDispatcher(chain))
    run(workflow.submit_code("12345"))

    result = run(workflow.confirm())

    assert result.state == WithdrawalState.COMMITTED
    assert result.ok
    assert result.warning
    assert not result.outcome.success
    assert len(result.outcome.attempts) == 3
    assert remote.rows[0]["status"] == "retirada"


def test_second_confirmation_is_rejected(store, remote, dispatcher, transports):
    remote.add(make_delivery(code="12345"))
    first = WithdrawalWorkflow(store, dispatcher)
    second = WithdrawalWorkflow(store, dispatcher)
    run(first.submit_code("12345"))
    run(second.submit_code("12345"))

    assert run(first.confirm()).state == WithdrawalState.COMMITTED
    result = run(second.confirm())

    assert result.state == WithdrawalState.REJECTED
    assert result.error_type == "AlreadyWithdrawn"
    assert len(transports[0].sent) == 1


def test_double_click_confirm_does_not_commit_twice(store, remote, dispatcher):
    remote.add(make_delivery(code="12345"))
    workflow = WithdrawalWorkflow(store, dispatcher)
    run(workflow.submit_code("12345"))

    assert run(workflow.confirm()).state == WithdrawalState.COMMITTED
    again = run(workflow.confirm())

    assert again.state != WithdrawalState.COMMITTED
    assert again.error_type == "NoDeliverySelected"


def test_already_withdrawn_delivery_is_rejected_without_touching_timestamps(store, remote, dispatcher):
    remote.add(make_delivery(code="12345").withdrawn(NOW, "antes"))
    before = dict(remote.rows[0])
    workflow = WithdrawalWorkflow(store, dispatcher)

    found = run(workflow.submit_code("12345"))
    assert found.state == WithdrawalState.FOUND
    assert found.warning

    result = run(workflow.confirm("depois"))

    assert result.state == WithdrawalState.REJECTED
    assert remote.rows[0] == before


def test_confirm_store_failure_returns_to_found(cache, dispatcher, transports):
    remote = FakeRemote(failing={"update"})
    remote.add(make_delivery(code="12345"))
    workflow = WithdrawalWorkflow(DeliveryStore(remote, cache), dispatcher)
    run(workflow.submit_code("12345"))
    cache_before = cache.read_all()

    result = run(workflow.confirm())

    assert result.state == WithdrawalState.FOUND
    assert result.error_type == "StoreUnavailable"
    assert workflow.found is not None
    assert cache.read_all() == cache_before
    assert transports[0].sent == []


def test_search_store_failure_returns_to_idle(dispatcher):
    store = DeliveryStore(FakeRemote(failing={"select"}), BrokenCache())
    workflow = WithdrawalWorkflow(store, dispatcher)

    result = run(workflow.submit_code("12345"))

    assert result.state == WithdrawalState.IDLE
    assert result.error_type == "StoreUnavailable"


def test_new_search_replaces_found_delivery(store, remote, dispatcher):
    remote.add(make_delivery(code="11111"))
    remote.add(make_delivery(code="22222"))
    workflow = WithdrawalWorkflow(store, dispatcher)

    run(workflow.submit_code("11111"))
    run(workflow.submit_code("22222"))
    result = run(workflow.confirm())

    assert result.delivery.pickup_code == "22222"
    statuses = {r["codigo_retirada"]: r["status"] for r in remote.rows}
    assert statuses == {"11111": "pendente", "22222": "retirada"}


def test_confirm_without_search(store, dispatcher):
    result = run(WithdrawalWorkflow(store, dispatcher).confirm())

    assert result.state == WithdrawalState.IDLE
    assert not result.ok
