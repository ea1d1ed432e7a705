from __future__ import annotations

"""
burnvault.floor — reserve-backed redemption
-------------------------------------------

The floor holds a reserve of the base currency and pays it out against
burned units of the asset. The price curve is proportional to the reserve's
backing per outstanding unit, with a refund haircut:

    refund(burned) = burned * reserve // total_supply * refund_bps // 10_000

For any `burned` up to the outstanding supply the quote is at most the
reserve. Larger requests are rejected with `InsufficientReserve` by `refund`.

Only authorized callers (the vault) may redeem. Funding the reserve is
out-of-band: anyone may move base currency into it with `fund`.
"""

import logging
from typing import Optional

from burnvault import metrics
from burnvault.access import Governance
from burnvault.cash import CashBook
from burnvault.config import BPS_DIVISOR, FloorParams
from burnvault.errors import (InsufficientAmount, InsufficientBalance,
                              InsufficientReserve)
from burnvault.ledger import Ledger

log = logging.getLogger(__name__)

Amount = int


class Floor:
    def __init__(
        self,
        ledger: Ledger,
        cash: CashBook,
        *,
        gov: str,
        params: Optional[FloorParams] = None,
        address: str = "floor",
    ) -> None:
        self.params = params or FloorParams()
        self.params.validate()
        self.address = address
        self._ledger = ledger
        self._cash = cash
        self._lock = ledger.lock
        self._governance = Governance(gov=gov, component="floor")

    @property
    def gov(self) -> str:
        return self._governance.gov

    def reserve_balance(self) -> Amount:
        return self._cash.balance_of(self.address)

    def is_caller(self, account: str) -> bool:
        return account in self._governance.senders

    def get_refund_amount(self, burned: Amount) -> Amount:
        if burned <= 0:
            return 0
        supply = self._ledger.total_supply()
        if supply == 0:
            return 0
        value = burned * self.reserve_balance() // supply
        return value * self.params.refund_bps // BPS_DIVISOR

    def fund(self, sender: str, amount: Amount) -> Amount:
        """Move base currency from `sender` into the reserve; returns the new reserve."""
        self._cash.transfer(sender, self.address, amount)
        reserve = self.reserve_balance()
        metrics.record_reserve(reserve)
        return reserve

    def refund(self, sender: str, to: str, burned: Amount) -> Amount:
        """
        Burn `burned` units held by `sender` and pay the quoted reserve share to `to`.
        Returns the amount paid.
        """
        with self._lock:
            if not self.is_caller(sender):
                self._governance.require_gov(sender, "refund")
            if burned <= 0:
                raise InsufficientAmount("refund requires a positive burn", amount=burned)

            self._ledger.rebase()
            amount = self.get_refund_amount(burned)
            reserve = self.reserve_balance()
            if amount > reserve:
                raise InsufficientReserve(required=amount, reserve=reserve)
            have = self._ledger.balance_of(sender)
            if have < burned:
                raise InsufficientBalance(account=sender, required=burned, available=have)

            self._ledger.burn(self.address, sender, burned)
            self._cash.transfer(self.address, to, amount)

            metrics.record_refund(amount, self.reserve_balance())
            log.info("floor: refund from=%s to=%s burned=%d paid=%d", sender, to, burned, amount)
            return amount

    # --- governance ---

    def add_caller(self, sender: str, account: str) -> None:
        self._governance.add_sender(sender, account)

    def remove_caller(self, sender: str, account: str) -> None:
        self._governance.remove_sender(sender, account)

    def set_gov(self, sender: str, new_gov: str) -> None:
        self._governance.transfer_governance(sender, new_gov)


__all__ = ["Floor"]
