from __future__ import annotations

"""
burnvault.cash — base-currency balances
---------------------------------------

The floor reserve, the distributor's funds, the vault's reward pool and every
payout recipient are plain accounts in one `CashBook`. Amounts are integer
base units (no floats). Inflows from outside the system enter through
`credit`; everything else is a `transfer` between accounts.

Concurrency: a coarse `threading.RLock` protects mutating methods.
"""

from threading import RLock
from typing import Dict

from burnvault.errors import InsufficientAmount, InsufficientBalance

Amount = int


def _ensure_nonneg(x: int, name: str) -> None:
    if x < 0:
        raise InsufficientAmount(f"{name} must be non-negative", amount=x)


class CashBook:
    """In-memory balances of the base currency."""

    def __init__(self) -> None:
        self._balances: Dict[str, Amount] = {}
        self._lock = RLock()

    def balance_of(self, account: str) -> Amount:
        return self._balances.get(account, 0)

    def total(self) -> Amount:
        return sum(self._balances.values())

    def credit(self, account: str, amount: Amount) -> Amount:
        """External inflow (e.g. funding the floor reserve). Returns the new balance."""
        _ensure_nonneg(amount, "amount")
        with self._lock:
            self._balances[account] = self.balance_of(account) + amount
            return self._balances[account]

    def transfer(self, sender: str, to: str, amount: Amount) -> None:
        _ensure_nonneg(amount, "amount")
        if amount == 0:
            return
        with self._lock:
            have = self.balance_of(sender)
            if have < amount:
                raise InsufficientBalance(account=sender, required=amount, available=have)
            self._balances[sender] = have - amount
            self._balances[to] = self.balance_of(to) + amount

    def snapshot(self) -> Dict[str, Amount]:
        with self._lock:
            return {k: v for k, v in sorted(self._balances.items()) if v}


__all__ = ["CashBook"]
