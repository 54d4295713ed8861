"""Tests for PaymentGateway and PaymentStatusPoller."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from life_tasker.cloud.payment_client import PaymentGateway, PaymentStatusPoller
from life_tasker.errors import NotFoundError, RemoteOperationError, ValidationError

CARD = {"number": "4242424242424242", "expiry": "12/30", "cvv": "123", "name": "A"}


class FakePaymentDB:
    def __init__(self, statuses: list[Any] | None = None) -> None:
        self.invoked: list[tuple[str, dict]] = []
        self.updates: list[tuple[str, dict, dict]] = []
        self.statuses = list(statuses or [])

    def invoke_function(self, name: str, payload: dict) -> dict:
        self.invoked.append((name, payload))
        if name == "verify-wechat-payment":
            return {"status": "completed"}
        return {"id": "p1", "order_id": "o1", "status": "pending", "qr_code_url": "weixin://qr"}

    def select(self, table: str, filters: dict, limit: int | None = None) -> list[dict]:
        if not self.statuses:
            return []
        status = self.statuses.pop(0)
        if isinstance(status, Exception):
            raise status
        return [{"id": filters["id"], "status": status}]

    def update(self, table: str, changes: dict, filters: dict) -> list[dict]:
        self.updates.append((table, changes, filters))
        return [{"id": filters["id"]}]


def test_initiate_wechat_calls_edge_function() -> None:
    db = FakePaymentDB()
    payment = PaymentGateway(db).initiate("wechat", "u1", 1200, "Premium")
    assert payment["qr_code_url"] == "weixin://qr"
    assert db.invoked == [("create-wechat-payment", {"amount": 1200, "userId": "u1", "description": "Premium"})]


def test_initiate_bank_card_requires_card_details() -> None:
    db = FakePaymentDB()
    gateway = PaymentGateway(db)
    with pytest.raises(ValidationError, match="cvv"):
        gateway.initiate("bank_card", "u1", 500, card={**CARD, "cvv": ""})
    gateway.initiate("bank_card", "u1", 500, card=CARD)
    assert db.invoked[-1][0] == "create-bank-card-payment"
    assert db.invoked[-1][1]["cardDetails"] == CARD


@pytest.mark.parametrize(("method", "amount"), [("paypal", 100), ("wechat", 0), ("wechat", -1)])
def test_initiate_rejects_bad_input(method: str, amount: int) -> None:
    with pytest.raises(ValidationError):
        PaymentGateway(FakePaymentDB()).initiate(method, "u1", amount)


def test_status_confirm_and_cancel() -> None:
    db = FakePaymentDB(["pending"])
    gateway = PaymentGateway(db)
    assert gateway.get_status("wechat", "p1") == "pending"
    with pytest.raises(NotFoundError):
        gateway.get_status("wechat", "p1")
    assert gateway.confirm("p1") == "completed"
    assert gateway.cancel("bank_card", "p1")
    assert db.updates == [("bank_card_payments", {"status": "failed"}, {"id": "p1", "status": "pending"})]


def test_poller_stops_on_completion_and_survives_errors() -> None:
    db = FakePaymentDB(["pending", RemoteOperationError("flaky"), "completed"])
    poller = PaymentStatusPoller(PaymentGateway(db), interval=0)
    updates: list[str] = []
    succeeded = []
    poller.on_update = updates.append
    poller.on_success = lambda: succeeded.append(True)
    poller.on_failure = lambda: pytest.fail("should not fail")

    assert asyncio.run(poller.run("p1")) == "completed"
    assert updates == ["pending", "completed"]
    assert succeeded == [True]
    assert not poller.is_running


def test_poller_reports_failure() -> None:
    poller = PaymentStatusPoller(PaymentGateway(FakePaymentDB(["failed"])), interval=0)
    failed = []
    poller.on_failure = lambda: failed.append(True)
    assert asyncio.run(poller.run("p1")) == "failed"
    assert failed == [True]


def test_poller_stop_before_first_poll() -> None:
    db = FakePaymentDB(["completed"])
    poller = PaymentStatusPoller(PaymentGateway(db), interval=0)

    async def run_and_stop() -> Any:
        job = asyncio.ensure_future(poller.run("p1"))
        await asyncio.sleep(0)
        poller.stop()
        return await job

    assert asyncio.run(run_and_stop()) is None
    assert db.statuses == ["completed"]


def test_gateway_is_exported_for_external_callers() -> None:
    import life_tasker.cloud as cloud

    assert cloud.PaymentGateway is PaymentGateway
    assert cloud.PaymentStatusPoller is PaymentStatusPoller
