from __future__ import annotations

import asyncio

from burnvault import metrics
from burnvault.errors import BurnVaultError, Forbidden, InsufficientBalance

from .conftest import GOV, UNIT


def test_errors_are_structured():
    err = InsufficientBalance(account="a", required=5, available=2)
    assert isinstance(err, BurnVaultError)
    assert err.to_dict() == {
        "code": "BV_INSUFFICIENT_BALANCE",
        "message": "insufficient balance",
        "details": {"account": "a", "required": 5, "available": 2},
    }
    assert str(Forbidden(sender="m", action="vault.refund")).startswith("BV_FORBIDDEN: forbidden")


def test_operations_are_exported(system, deposit, clock):
    system.cash.credit(GOV, 100 * UNIT)
    system.floor.fund(GOV, 100 * UNIT)
    deposit("a", 10 * UNIT)
    clock.advance_hours(2)
    assert system.vault.refund(GOV, GOV) > 0

    text = metrics.render().decode("utf-8")
    assert "burnvault_vault_deposits_total" in text
    assert "burnvault_ledger_rebases_total" in text
    assert "burnvault_vault_pending_burn_tokens" in text
    assert "burnvault_vault_refunds_total" in text


def test_asgi_app_serves_metrics():
    app = metrics.make_prometheus_asgi_app()
    sent = []

    async def receive():
        return {"type": "http.request"}

    async def send(message):
        sent.append(message)

    asyncio.run(app({"type": "http", "path": "/"}, receive, send))
    assert sent[0]["status"] == 200
    assert b"burnvault_" in sent[1]["body"]

    sent.clear()
    asyncio.run(app({"type": "http", "path": "/other"}, receive, send))
    assert sent[0]["status"] == 404
