from __future__ import annotations

import pytest

from burnvault.errors import (Forbidden, InsufficientAmount, InsufficientBalance,
                              InsufficientReserve)

from .conftest import GOV, UNIT


@pytest.fixture()
def funded(system):
    system.cash.credit(GOV, 1_000 * UNIT)
    system.floor.fund(GOV, 1_000 * UNIT)
    return system


def test_refund_quote_is_proportional_with_haircut(funded):
    floor = funded.floor
    assert floor.reserve_balance() == 1_000 * UNIT
    # reserve 1000, supply 1000 -> 1:1 backing, 90% paid
    assert floor.get_refund_amount(10 * UNIT) == 9 * UNIT
    assert floor.get_refund_amount(0) == 0


def test_quote_without_reserve_is_zero(system):
    assert system.floor.get_refund_amount(10 * UNIT) == 0


def test_refund_burns_and_pays(funded):
    floor, ledger, cash = funded.floor, funded.ledger, funded.cash

    paid = floor.refund(GOV, "alice", 10 * UNIT)

    assert paid == 9 * UNIT
    assert cash.balance_of("alice") == 9 * UNIT
    assert floor.reserve_balance() == 991 * UNIT
    assert ledger.total_supply() == 990 * UNIT
    assert ledger.balance_of(GOV) == 990 * UNIT


def test_refund_requires_caller_role(funded):
    with pytest.raises(Forbidden) as ei:
        funded.floor.refund("mallory", "mallory", UNIT)
    assert ei.value.details["action"] == "floor.refund"

    funded.floor.add_caller(GOV, "mallory")
    assert funded.floor.is_caller("mallory")
    with pytest.raises(InsufficientBalance):
        funded.floor.refund("mallory", "mallory", UNIT)


def test_refund_rejects_degenerate_and_oversized_burns(funded):
    floor = funded.floor
    with pytest.raises(InsufficientAmount):
        floor.refund(GOV, "alice", 0)
    # burning more than the outstanding supply would pay more than the reserve
    with pytest.raises(InsufficientReserve) as ei:
        floor.refund(GOV, "alice", 1_500 * UNIT)
    assert ei.value.details["reserve"] == 1_000 * UNIT
    assert floor.reserve_balance() == 1_000 * UNIT
    assert funded.ledger.total_supply() == 1_000 * UNIT


def test_caller_management_is_gov_only(funded):
    with pytest.raises(Forbidden):
        funded.floor.add_caller("mallory", "mallory")
    funded.floor.remove_caller(GOV, funded.vault.address)
    assert not funded.floor.is_caller(funded.vault.address)


@pytest.mark.parametrize(
    "op",
    [
        lambda f: f.add_caller("mallory", "mallory"),
        lambda f: f.remove_caller("mallory", "burn-vault"),
        lambda f: f.set_gov("mallory", "mallory"),
    ],
    ids=["add_caller", "remove_caller", "set_gov"],
)
def test_gated_operations_reject_outsiders(funded, op):
    floor = funded.floor
    before = (floor.gov, floor.is_caller("burn-vault"), floor.is_caller("mallory"), floor.reserve_balance())

    with pytest.raises(Forbidden) as ei:
        op(floor)

    assert ei.value.details["sender"] == "mallory"
    assert (floor.gov, floor.is_caller("burn-vault"), floor.is_caller("mallory"), floor.reserve_balance()) == before
    assert before[1]
