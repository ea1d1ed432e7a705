from __future__ import annotations

import os
from typing import Callable

import pytest

from burnvault.clock import ManualClock
from burnvault.config import BurnVaultConfig
from burnvault.ledger import Ledger
from burnvault.system import System, build_system

UNIT = 10**18
GOV = "gov"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep BURNVAULT_* variables from the outer environment out of the tests."""
    for key in list(os.environ):
        if key.startswith("BURNVAULT_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def ledger(clock: ManualClock) -> Ledger:
    return Ledger(gov=GOV, clock=clock)


@pytest.fixture()
def system(clock: ManualClock) -> System:
    return build_system(BurnVaultConfig(), gov=GOV, clock=clock)


@pytest.fixture()
def deposit(system: System) -> Callable[[str, int], int]:
    """Mint `amount` to `user` (fee-free) and deposit all of it; returns the vault share."""

    def _deposit(user: str, amount: int) -> int:
        system.ledger.mint(GOV, user, amount)
        system.ledger.approve(user, system.vault.address, amount)
        return system.vault.deposit(user, amount)

    return _deposit


@pytest.fixture()
def check_conservation(system: System) -> Callable[[], None]:
    def _check() -> None:
        vault = system.vault
        held = system.ledger.balance_of(vault.address)
        assert vault.total_share_supply() + vault.pending_burn() == held
        t = vault.totals()
        assert t["deposited"] + t["surplus"] == (
            t["share_supply"] + t["pending_burn"] + t["withdrawn"] + t["refunded"] + t["shortfall"]
        )

    return _check
