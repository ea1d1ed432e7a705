from __future__ import annotations

"""
burnvault.distributor — linear payout streams
---------------------------------------------

Streams the distributor's base-currency funds to registered beneficiaries at
a per-second rate. Accrual counts whole `interval_s` periods only; partial
intervals stay pending until the next claim.

Claims are best effort: a claim pays what is owed capped by the funds the
distributor actually holds and reports the outcome as a `ClaimResult`
(`PAID_FULL`, `PAID_PARTIAL`, `PAID_ZERO`). Once a claim covers at least one
interval the beneficiary's clock resets, so any shortfall is forgone rather
than carried forward.

Rate changes never reprice elapsed time: `set_distribution` first settles the
time accrued under the old rate into `accrued`, which the next claim pays.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Callable, Dict, Optional, Sequence

from burnvault import metrics
from burnvault.access import Governance
from burnvault.cash import CashBook
from burnvault.config import DistributorParams
from burnvault.errors import InvalidDistribution

log = logging.getLogger(__name__)

Amount = int


class ClaimStatus(str, Enum):
    PAID_FULL = "paid_full"
    PAID_PARTIAL = "paid_partial"
    PAID_ZERO = "paid_zero"


@dataclass(frozen=True)
class ClaimResult:
    beneficiary: str
    owed: Amount
    paid: Amount
    status: ClaimStatus

    @property
    def shortfall(self) -> Amount:
        return self.owed - self.paid


class TimeDistributor:
    def __init__(
        self,
        cash: CashBook,
        *,
        gov: str,
        params: Optional[DistributorParams] = None,
        clock: Callable[[], float] | None = None,
        address: str = "distributor",
    ) -> None:
        self.params = params or DistributorParams()
        self.params.validate()
        self.address = address
        self._cash = cash
        self._clock = clock or time.time
        self._lock = RLock()
        self._governance = Governance(gov=gov, component="distributor")
        self._rates: Dict[str, Amount] = {}
        self._last_claim: Dict[str, int] = {}
        self._accrued: Dict[str, Amount] = {}

    # --- introspection ---

    @property
    def gov(self) -> str:
        return self._governance.gov

    def funds(self) -> Amount:
        return self._cash.balance_of(self.address)

    def rate_of(self, beneficiary: str) -> Amount:
        return self._rates.get(beneficiary, 0)

    def last_claim_of(self, beneficiary: str) -> Optional[int]:
        return self._last_claim.get(beneficiary)

    def pending_amount(self, beneficiary: str) -> Amount:
        """Amount owed right now, before capping by funds."""
        return self._accrued.get(beneficiary, 0) + self._streamed(beneficiary, self._now())[0]

    # --- mutations ---

    def fund(self, sender: str, amount: Amount) -> Amount:
        self._cash.transfer(sender, self.address, amount)
        return self.funds()

    def set_distribution(self, sender: str, beneficiaries: Sequence[str], rates: Sequence[Amount]) -> None:
        """Replace the rate table. Beneficiaries left out stop accruing."""
        with self._lock:
            self._governance.require_gov(sender, "set_distribution")
            if len(beneficiaries) != len(rates):
                raise InvalidDistribution(
                    "beneficiaries and rates differ in length",
                    details={"beneficiaries": len(beneficiaries), "rates": len(rates)},
                )
            if any(r < 0 for r in rates):
                raise InvalidDistribution("rates must be non-negative")
            if len(set(beneficiaries)) != len(beneficiaries):
                raise InvalidDistribution("duplicate beneficiary")

            now = self._now()
            table = dict(zip(beneficiaries, rates))
            for b in set(self._rates) | set(table):
                self._settle(b, now)
                self._last_claim[b] = now
                if table.get(b):
                    self._rates[b] = table[b]
                else:
                    self._rates.pop(b, None)
            log.info("distributor: distribution set beneficiaries=%d", len(table))

    def claim(self, sender: str, beneficiary: str, to: str) -> ClaimResult:
        with self._lock:
            if sender != beneficiary:
                self._governance.require_gov(sender, "claim")

            now = self._now()
            streamed, intervals = self._streamed(beneficiary, now)
            owed = self._accrued.get(beneficiary, 0) + streamed
            if intervals > 0:
                self._last_claim[beneficiary] = now

            paid = min(owed, self.funds())
            if paid:
                self._cash.transfer(self.address, to, paid)
            self._accrued.pop(beneficiary, None)

            if paid == 0:
                status = ClaimStatus.PAID_ZERO
            elif paid < owed:
                status = ClaimStatus.PAID_PARTIAL
            else:
                status = ClaimStatus.PAID_FULL
            if paid < owed:
                log.warning("distributor: underfunded claim beneficiary=%s owed=%d paid=%d",
                            beneficiary, owed, paid)

            metrics.record_distributor_claim(status.value, paid)
            return ClaimResult(beneficiary=beneficiary, owed=owed, paid=paid, status=status)

    def set_gov(self, sender: str, new_gov: str) -> None:
        with self._lock:
            self._governance.transfer_governance(sender, new_gov)

    # --- internal helpers ---

    def _now(self) -> int:
        return int(self._clock())

    def _streamed(self, beneficiary: str, now: int) -> tuple[Amount, int]:
        """(amount streamed since the last claim at the current rate, whole intervals)."""
        last = self._last_claim.get(beneficiary)
        rate = self._rates.get(beneficiary, 0)
        if last is None:
            return 0, 0
        intervals = max(0, now - last) // self.params.interval_s
        return rate * intervals * self.params.interval_s, intervals

    def _settle(self, beneficiary: str, now: int) -> None:
        streamed, _ = self._streamed(beneficiary, now)
        if streamed:
            self._accrued[beneficiary] = self._accrued.get(beneficiary, 0) + streamed


__all__ = ["ClaimStatus", "ClaimResult", "TimeDistributor"]
