from __future__ import annotations

import pytest

from burnvault.clock import ManualClock
from burnvault.errors import (AllowanceExceeded, Forbidden, InsufficientAmount,
                              InsufficientBalance)
from burnvault.system import build_system

from .conftest import GOV, UNIT


def _loss(vault, user: str, deposited: int) -> int:
    return deposited - vault.balance_of(user)


def _fund_floor(system, amount: int) -> None:
    system.cash.credit(GOV, amount)
    system.floor.fund(GOV, amount)


# ------------------------------ deposits ------------------------------


def test_deposit_credits_exact_share(system, deposit, check_conservation):
    assert deposit("alice", 100 * UNIT) == 100 * UNIT
    vault = system.vault
    assert vault.balance_of("alice") == 100 * UNIT
    assert vault.total_share_supply() == 100 * UNIT
    assert vault.held_balance() == 100 * UNIT
    assert vault.pending_burn() == 0
    check_conservation()


def test_deposit_rejects_zero_and_unapproved(system):
    vault = system.vault
    with pytest.raises(InsufficientAmount):
        vault.deposit(GOV, 0)
    with pytest.raises(AllowanceExceeded):
        vault.deposit(GOV, UNIT)
    assert vault.total_share_supply() == 0
    assert vault.events() == ()


def test_vault_holdings_do_not_rebase(system, deposit, clock):
    deposit("alice", 100 * UNIT)
    clock.advance_hours(10)
    system.vault.sync()
    assert system.vault.held_balance() == 100 * UNIT


# ------------------------------ decay ------------------------------


def test_decay_is_proportional(system, deposit, clock, check_conservation):
    deposit("a", 100 * UNIT)
    deposit("b", 300 * UNIT)
    clock.advance_hours(10)

    vault = system.vault
    loss_a = _loss(vault, "a", 100 * UNIT)
    loss_b = _loss(vault, "b", 300 * UNIT)
    assert loss_a > 0
    assert abs(loss_b - 3 * loss_a) <= 3
    check_conservation()


def test_decay_is_half_the_ledger_rate(system, deposit, clock):
    deposit("a", 100 * UNIT)
    system.ledger.mint(GOV, "holder", 100 * UNIT)
    clock.advance_hours(20)
    system.vault.sync()

    vault_loss = _loss(system.vault, "a", 100 * UNIT)
    ledger_loss = 100 * UNIT - system.ledger.balance_of("holder")
    assert abs(2 * vault_loss - ledger_loss) < ledger_loss // 100


def test_decay_is_independent_of_deposit_order():
    results = []
    for order in (("a", "b"), ("b", "a")):
        clock = ManualClock()
        s = build_system(gov=GOV, clock=clock)
        for user in order:
            s.ledger.mint(GOV, user, 50 * UNIT)
            s.ledger.approve(user, s.vault.address, 50 * UNIT)
            s.vault.deposit(user, 50 * UNIT)
        clock.advance_hours(15)
        results.append((s.vault.balance_of("a"), s.vault.balance_of("b"), s.vault.pending_burn()))
    assert results[0] == results[1]


def test_later_deposits_are_isolated_from_earlier_decay(system, deposit, clock):
    vault = system.vault
    deposit("early", 100 * UNIT)
    clock.advance_hours(10)
    first_period = _loss(vault, "early", 100 * UNIT)

    assert deposit("late", 100 * UNIT) == 100 * UNIT
    clock.advance_hours(10)

    loss_early = _loss(vault, "early", 100 * UNIT)
    loss_late = _loss(vault, "late", 100 * UNIT)
    assert loss_late < loss_early
    assert abs(loss_late - first_period) < first_period // 100


def test_reconciliation_is_idempotent(system, deposit, clock, check_conservation):
    deposit("a", 100 * UNIT)
    clock.advance_hours(10)
    vault = system.vault

    assert vault.sync() > 0
    snapshot = vault.totals()
    assert vault.sync() == 0
    assert vault.totals() == snapshot
    check_conservation()


def test_views_preview_without_mutating(system, deposit, clock):
    deposit("a", 100 * UNIT)
    clock.advance_hours(10)
    vault = system.vault

    pending = vault.pending_burn()
    assert pending > 0
    assert vault.events()[-1].pending_burn_after == 0
    assert vault.sync() == pending


def test_surplus_inflow_joins_pending_burn(system, deposit, check_conservation):
    deposit("a", 100 * UNIT)
    system.ledger.transfer(GOV, system.vault.address, 5 * UNIT)
    system.vault.sync()

    assert system.vault.pending_burn() == 5 * UNIT
    assert system.vault.totals()["surplus"] == 5 * UNIT
    assert system.vault.balance_of("a") == 100 * UNIT
    check_conservation()


def test_shortfall_haircuts_depositors_proportionally(system, deposit, clock, check_conservation):
    deposit("a", 100 * UNIT)
    deposit("b", 300 * UNIT)
    # holdings start decaying at the full ledger rate
    system.ledger.remove_safe(GOV, system.vault.address)
    clock.advance_hours(10)
    system.vault.sync()

    vault = system.vault
    assert vault.totals()["shortfall"] > 0
    assert vault.total_share_supply() + vault.pending_burn() == vault.held_balance()
    loss_a = _loss(vault, "a", 100 * UNIT)
    loss_b = _loss(vault, "b", 300 * UNIT)
    assert abs(loss_b - 3 * loss_a) <= 3
    check_conservation()


# ------------------------------ withdrawals ------------------------------


def test_withdraw_is_exact(system, deposit, clock, check_conservation):
    deposit("a", 100 * UNIT)
    clock.advance_hours(10)
    vault = system.vault

    share = vault.balance_of("a")
    assert vault.withdraw("a", "a", share) == 0
    assert system.ledger.balance_of("a") == share
    assert vault.balance_of("a") == 0
    check_conservation()


def test_full_withdrawals_leave_no_share_supply(system, deposit, clock, check_conservation):
    users = [f"d{i}" for i in range(5)]
    for i, user in enumerate(users):
        deposit(user, UNIT + 7 * i + 3)
    clock.advance_hours(7)
    vault = system.vault
    vault.sync()
    pending = vault.pending_burn()
    assert 0 <= vault.total_share_supply() - sum(vault.balance_of(u) for u in users) < len(users)

    for user in users:
        assert vault.withdraw(user, user, vault.balance_of(user)) == 0

    assert [vault.balance_of(u) for u in users] == [0] * 5
    assert vault.total_share_supply() == 0
    assert vault.pending_burn() >= pending
    assert vault.pending_burn() == vault.held_balance()
    check_conservation()


def test_partial_withdraw_to_another_account(system, deposit, check_conservation):
    deposit("a", 100 * UNIT)
    assert system.vault.withdraw("a", "bob", 40 * UNIT) == 60 * UNIT
    assert system.ledger.balance_of("bob") == 40 * UNIT
    check_conservation()


def test_withdraw_rejects_zero_and_excess(system, deposit):
    deposit("a", 100 * UNIT)
    with pytest.raises(InsufficientAmount):
        system.vault.withdraw("a", "a", 0)
    with pytest.raises(InsufficientBalance):
        system.vault.withdraw("a", "a", 100 * UNIT + 1)
    with pytest.raises(InsufficientBalance):
        system.vault.withdraw("stranger", "stranger", 1)
    assert system.vault.balance_of("a") == 100 * UNIT


# ------------------------------ refunds ------------------------------


def test_refund_redeems_pending_burn(system, deposit, clock, check_conservation):
    _fund_floor(system, 1_000 * UNIT)
    deposit("a", 100 * UNIT)
    clock.advance_hours(10)

    vault = system.vault
    vault.sync()
    burned = vault.pending_burn()
    held = vault.held_balance()
    expected = system.floor.get_refund_amount(burned)
    assert expected > 0

    paid = vault.refund(GOV, "treasury")

    assert paid == expected
    assert system.cash.balance_of("treasury") == paid
    assert vault.pending_burn() == 0
    assert vault.held_balance() == held - burned
    assert vault.totals()["refunded"] == burned
    check_conservation()


def test_refund_without_pending_is_noop(system):
    assert system.vault.refund(GOV, GOV) == 0
    assert system.vault.events() == ()


def test_refund_keeps_pending_burn_when_floor_quotes_zero(system, deposit, clock, check_conservation):
    deposit("a", 100 * UNIT)
    clock.advance_hours(5)
    vault = system.vault
    vault.sync()
    pending = vault.pending_burn()
    supply = system.ledger.total_supply()

    assert vault.refund(GOV, GOV) == 0
    assert vault.pending_burn() == pending > 0
    assert system.ledger.total_supply() == supply
    assert [e.op for e in vault.events()] == ["deposit", "reconcile"]

    _fund_floor(system, 1_000 * UNIT)
    assert vault.refund(GOV, GOV) > 0
    assert vault.pending_burn() == 0
    check_conservation()


def test_refund_is_restricted(system, deposit, clock):
    _fund_floor(system, 1_000 * UNIT)
    deposit("a", 100 * UNIT)
    clock.advance_hours(1)
    vault = system.vault
    with pytest.raises(Forbidden) as ei:
        vault.refund("mallory", "mallory")
    assert ei.value.details["action"] == "vault.refund"

    vault.add_sender(GOV, "keeper")
    assert vault.refund("keeper", "keeper") > 0
    assert vault.pending_burn() == 0

    vault.remove_sender(GOV, "keeper")
    with pytest.raises(Forbidden):
        vault.refund("keeper", "keeper")


# ------------------------------ rewards ------------------------------


@pytest.fixture()
def streaming(system):
    system.cash.credit(GOV, 10**6)
    system.distributor.fund(GOV, 10**6)
    system.distributor.set_distribution(GOV, [system.vault.address], [10])
    return system


def test_rewards_are_shared_by_balance(streaming, deposit, clock):
    deposit("a", 100 * UNIT)
    deposit("b", 100 * UNIT)
    clock.advance(100)
    vault = streaming.vault

    assert vault.claim("a", "a") == 500
    assert streaming.cash.balance_of("a") == 500
    assert vault.last_distribution.paid == 1_000
    assert vault.claimable("b") == 500
    assert vault.claim("a", "a") == 0


def test_withdraw_without_distribution_skips_the_distributor(streaming, deposit, clock):
    deposit("a", 100 * UNIT)
    clock.advance(100)

    streaming.vault.withdraw_without_distribution("a", "a", 10 * UNIT)
    assert streaming.distributor.pending_amount(streaming.vault.address) == 1_000

    streaming.vault.withdraw("a", "a", 10 * UNIT)
    assert streaming.distributor.pending_amount(streaming.vault.address) == 0


def test_set_distributor_settles_the_old_one(streaming, deposit, clock):
    deposit("a", 100 * UNIT)
    clock.advance(100)
    vault = streaming.vault

    with pytest.raises(Forbidden):
        vault.set_distributor("mallory", None)
    vault.set_distributor(GOV, None)
    assert vault.distributor is None
    assert vault.claimable("a") == 1_000
    assert vault.claim("a", "a") == 1_000
    assert vault.claim("a", "a") == 0


def test_claim_without_distributor_is_noop(system, deposit):
    system.vault.set_distributor(GOV, None)
    deposit("a", UNIT)
    assert system.vault.claim("a", "a") == 0


# ------------------------------ governance & journal ------------------------------


def test_governance_handoff(system):
    vault = system.vault
    vault.set_gov(GOV, "dao")
    assert vault.gov == "dao"
    with pytest.raises(Forbidden):
        vault.add_sender(GOV, "keeper")
    vault.add_sender("dao", "keeper")
    assert vault.senders() == ("keeper",)


def test_journal_tracks_operations(system, deposit, clock):
    _fund_floor(system, 1_000 * UNIT)
    deposit("a", 100 * UNIT)
    clock.advance_hours(2)
    system.vault.withdraw("a", "a", UNIT)
    system.vault.refund(GOV, GOV)

    ops = [e.op for e in system.vault.events()]
    assert ops == ["deposit", "withdraw", "refund"]
    assert system.vault.events()[-1].pending_burn_after == 0


@pytest.mark.parametrize(
    "op",
    [
        lambda v: v.set_gov("mallory", "mallory"),
        lambda v: v.set_distributor("mallory", None),
        lambda v: v.add_sender("mallory", "mallory"),
        lambda v: v.remove_sender("mallory", "keeper"),
        lambda v: v.refund("mallory", "mallory"),
    ],
    ids=["set_gov", "set_distributor", "add_sender", "remove_sender", "refund"],
)
def test_gated_operations_reject_outsiders(system, deposit, clock, op):
    _fund_floor(system, 1_000 * UNIT)
    vault = system.vault
    vault.add_sender(GOV, "keeper")
    deposit("a", 100 * UNIT)
    clock.advance_hours(3)
    vault.sync()
    before = (vault.gov, vault.senders(), vault.distributor, vault.totals(), vault.events())

    with pytest.raises(Forbidden) as ei:
        op(vault)

    assert ei.value.details["sender"] == "mallory"
    assert (vault.gov, vault.senders(), vault.distributor, vault.totals(), vault.events()) == before
    assert system.floor.reserve_balance() == 1_000 * UNIT
