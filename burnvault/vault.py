from __future__ import annotations

"""
burnvault.vault — decay-shielding deposit vault
-----------------------------------------------

Depositors move ledger units into the vault and receive decay-adjusted
shares. The vault account is registered as a safe on the ledger, so its held
balance does not rebase; instead the shares decay through a vault divisor
that follows a fraction (`decay_share_bps`) of the ledger's divisor growth:

    base_divisor  = initial + (ledger.normal_divisor - initial) * decay_share_bps // 10_000
    vault_divisor = base_divisor * haircut // HAIRCUT_PRECISION
    balance_of(d) = shares[d] // vault_divisor

Every unit a share loses this way becomes `pending_burn`: vault-held value no
depositor owns any more, redeemable against the floor through `refund`.

Reconciliation
~~~~~~~~~~~~~~
Runs at the start of every operation (and via `sync()`), in O(1):
  1) poke `ledger.rebase()`;
  2) the drop of `total_share_supply` since the last reconciliation is the
     realized decay and moves to `pending_burn`;
  3) compare with the real held balance: unowned surplus joins
     `pending_burn`; a shortfall raises `haircut` so every depositor loses in
     proportion and `total_share_supply == held - pending_burn`.

Invariants (checked after every mutation)
  • total_share_supply + pending_burn == ledger.balance_of(vault)
  • deposited + surplus == total_share_supply + pending_burn
                           + withdrawn + refunded + shortfall

Rewards
~~~~~~~
The vault is itself a distributor beneficiary. Pulled payouts are spread over
depositors with a reward-per-share accumulator; each depositor's claimable
amount settles lazily whenever they touch the vault.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, NamedTuple, Optional, Tuple

from burnvault import metrics
from burnvault.access import Governance
from burnvault.cash import CashBook
from burnvault.config import BPS_DIVISOR, VaultParams
from burnvault.distributor import ClaimResult, TimeDistributor
from burnvault.errors import (InsufficientAmount, InsufficientBalance,
                              InvariantViolation)
from burnvault.floor import Floor
from burnvault.ledger import Ledger

log = logging.getLogger(__name__)

Amount = int
HAIRCUT_PRECISION = 10**18
REWARD_PRECISION = 10**30

OpName = Literal["deposit", "withdraw", "claim", "refund", "reconcile"]


class _Reconciled(NamedTuple):
    haircut: int
    divisor: int
    supply: Amount
    pending: Amount
    realized: Amount
    surplus: Amount
    shortfall: Amount


@dataclass(frozen=True)
class VaultEvent:
    seq: int
    op: OpName
    account: str
    amount: Amount
    share_supply_after: Amount
    pending_burn_after: Amount
    meta: Dict[str, str] = field(default_factory=dict)


class BurnVault:
    """
    Deposit vault over a `Ledger`, redeeming pending burn through a `Floor`.

    The vault does not register itself: the ledger governor must make
    `address` a safe and the floor governor must add it as a caller (see
    `burnvault.system.build_system`).
    """

    def __init__(
        self,
        ledger: Ledger,
        floor: Floor,
        cash: CashBook,
        *,
        gov: str,
        params: Optional[VaultParams] = None,
        distributor: Optional[TimeDistributor] = None,
        address: str = "burn-vault",
    ) -> None:
        self.params = params or VaultParams()
        self.params.validate()
        self.address = address
        self._ledger = ledger
        self._floor = floor
        self._cash = cash
        self._distributor = distributor
        self._lock = ledger.lock
        self._governance = Governance(gov=gov, component="vault")

        self._initial_divisor = ledger.normal_divisor
        self._haircut = HAIRCUT_PRECISION
        self._shares: Dict[str, int] = {}
        self._total_shares = 0
        self._tracked_supply: Amount = 0
        self._pending_burn: Amount = 0

        self._deposited: Amount = 0
        self._withdrawn: Amount = 0
        self._refunded: Amount = 0
        self._surplus: Amount = 0
        self._shortfall: Amount = 0

        self._reward_per_share = 0
        self._reward_checkpoint: Dict[str, int] = {}
        self._claimable: Dict[str, Amount] = {}
        self._unallocated_rewards: Amount = 0
        self.last_distribution: Optional[ClaimResult] = None

        self._journal: List[VaultEvent] = []

    # --- introspection (views never mutate; they include pending reconciliation) ---

    @property
    def gov(self) -> str:
        return self._governance.gov

    @property
    def distributor(self) -> Optional[TimeDistributor]:
        return self._distributor

    def senders(self) -> Tuple[str, ...]:
        return tuple(sorted(self._governance.authorized()))

    def divisor(self) -> int:
        return self._preview().divisor

    def balance_of(self, account: str) -> Amount:
        return self._shares.get(account, 0) // self._preview().divisor

    def total_share_supply(self) -> Amount:
        return self._preview().supply

    def pending_burn(self) -> Amount:
        return self._preview().pending

    def held_balance(self) -> Amount:
        return self._ledger.projected_balance_of(self.address)

    def claimable(self, account: str) -> Amount:
        """Rewards already allocated to `account` (does not pull from the distributor)."""
        owed = self._claimable.get(account, 0)
        delta = self._reward_per_share - self._reward_checkpoint.get(account, 0)
        return owed + self._shares.get(account, 0) // self._divisor(self._haircut) * delta // REWARD_PRECISION

    def totals(self) -> Dict[str, Amount]:
        snap = self._preview()
        return {
            "deposited": self._deposited,
            "withdrawn": self._withdrawn,
            "refunded": self._refunded,
            "surplus": self._surplus + snap.surplus,
            "shortfall": self._shortfall + snap.shortfall,
            "share_supply": snap.supply,
            "pending_burn": snap.pending,
        }

    def events(self) -> Tuple[VaultEvent, ...]:
        return tuple(self._journal)

    # --- reconciliation ---

    def sync(self) -> Amount:
        """Reconcile with the ledger now; returns the decay realized by this call."""
        with self._lock:
            snap = self._reconcile()
            if snap.realized or snap.surplus or snap.shortfall:
                self._emit("reconcile", "", snap.realized, meta={
                    "surplus": str(snap.surplus), "shortfall": str(snap.shortfall)})
            return snap.realized

    def _base_divisor(self) -> int:
        grown = self._ledger.projected_divisor() - self._initial_divisor
        return self._initial_divisor + grown * self.params.decay_share_bps // BPS_DIVISOR

    def _divisor(self, haircut: int) -> int:
        return self._base_divisor() * haircut // HAIRCUT_PRECISION

    def _preview(self) -> _Reconciled:
        haircut = self._haircut
        divisor = self._divisor(haircut)
        supply = self._total_shares // divisor
        realized = self._tracked_supply - supply
        if realized < 0:
            raise InvariantViolation(
                "vault share supply grew without a deposit",
                details={"tracked": self._tracked_supply, "supply": supply},
            )
        pending = self._pending_burn + realized
        held = self._ledger.projected_balance_of(self.address)

        surplus = shortfall = 0
        if supply + pending < held:
            surplus = held - supply - pending
            pending += surplus
        elif supply + pending > held:
            shortfall = supply + pending - held
            if pending > held:
                pending = held
            target = held - pending
            if supply > target:
                # smallest divisor that brings the supply down to `target`
                needed = self._total_shares // (target + 1) + 1
                base = self._base_divisor()
                haircut = max(haircut, -(-needed * HAIRCUT_PRECISION // base))
                divisor = self._divisor(haircut)
                supply = self._total_shares // divisor
            pending += target - supply
        return _Reconciled(haircut, divisor, supply, pending, realized, surplus, shortfall)

    def _reconcile(self) -> _Reconciled:
        self._ledger.rebase()
        snap = self._preview()
        self._haircut = snap.haircut
        self._tracked_supply = snap.supply
        self._pending_burn = snap.pending
        self._surplus += snap.surplus
        self._shortfall += snap.shortfall
        if snap.realized:
            metrics.record_decay(snap.realized)
            log.debug("vault: realized decay=%d pending=%d", snap.realized, snap.pending)
        if snap.shortfall:
            log.warning("vault: held balance short by %d, haircut=%d", snap.shortfall, snap.haircut)
        self._check_conservation()
        return snap

    def _check_conservation(self) -> None:
        held = self._ledger.projected_balance_of(self.address)
        if self._tracked_supply + self._pending_burn != held:
            raise InvariantViolation(
                "share supply plus pending burn differs from held balance",
                details={"supply": self._tracked_supply, "pending": self._pending_burn, "held": held},
            )
        inflow = self._deposited + self._surplus
        outflow = (self._tracked_supply + self._pending_burn + self._withdrawn
                   + self._refunded + self._shortfall)
        if inflow != outflow:
            raise InvariantViolation(
                "decayed value not conserved",
                details={"inflow": inflow, "outflow": outflow},
            )

    # --- deposits & withdrawals ---

    def deposit(self, sender: str, amount: Amount) -> Amount:
        """Pull `amount` from `sender` into the vault; returns the sender's new share."""
        if amount <= 0:
            raise InsufficientAmount("deposit amount must be positive", amount=amount)
        with self._lock:
            snap = self._reconcile()
            self._ledger.transfer_from(self.address, sender, self.address, amount)
            self._update_rewards(sender, distribute=True)

            scaled = amount * snap.divisor
            self._shares[sender] = self._shares.get(sender, 0) + scaled
            self._total_shares += scaled
            self._tracked_supply += amount
            self._deposited += amount
            self._check_conservation()

            self._emit("deposit", sender, amount)
            metrics.record_deposit()
            self._record_state()
            log.info("vault: deposit account=%s amount=%d", sender, amount)
            return self._shares[sender] // snap.divisor

    def withdraw(self, sender: str, to: str, amount: Amount) -> Amount:
        """Withdraw part of the reconciled share, settling distributor rewards first."""
        return self._withdraw(sender, to, amount, distribute=True)

    def withdraw_without_distribution(self, sender: str, to: str, amount: Amount) -> Amount:
        """
        Withdraw without pulling from the distributor. Escape hatch for an
        unreachable or misconfigured distributor: rewards streamed but not yet
        pulled are not allocated to the sender's outgoing share.
        """
        return self._withdraw(sender, to, amount, distribute=False)

    def _withdraw(self, sender: str, to: str, amount: Amount, *, distribute: bool) -> Amount:
        if amount <= 0:
            raise InsufficientAmount("withdraw amount must be positive", amount=amount)
        with self._lock:
            snap = self._reconcile()
            have = self._shares.get(sender, 0) // snap.divisor
            if amount > have:
                raise InsufficientBalance(account=sender, required=amount, available=have)

            self._ledger.transfer(self.address, to, amount)
            self._update_rewards(sender, distribute=distribute)

            scaled = amount * snap.divisor
            self._shares[sender] -= scaled
            self._total_shares -= scaled
            self._tracked_supply -= amount
            self._withdrawn += amount
            if self._shares[sender] < snap.divisor:
                self._sweep_remainder(sender, snap.divisor)
            self._check_conservation()

            self._emit("withdraw", sender, amount, meta={"to": to, "distributed": str(distribute)})
            metrics.record_withdrawal(distribute)
            self._record_state()
            log.info("vault: withdraw account=%s to=%s amount=%d distributed=%s",
                     sender, to, amount, distribute)
            return self._shares.get(sender, 0) // snap.divisor

    def _sweep_remainder(self, account: str, divisor: int) -> None:
        """
        Close a position whose remaining shares are worth less than one unit.
        The remainder leaves `_total_shares`; any unit of share supply it was
        propping up is owned by nobody and becomes pending burn.
        """
        self._total_shares -= self._shares.pop(account)
        supply = self._total_shares // divisor
        dust = self._tracked_supply - supply
        if dust:
            self._pending_burn += dust
            self._tracked_supply = supply
            log.debug("vault: swept remainder account=%s dust=%d", account, dust)

    # --- rewards ---

    def claim(self, sender: str, to: str) -> Amount:
        """Pay the sender's allocated rewards (base currency) to `to`."""
        with self._lock:
            self._reconcile()
            self._update_rewards(sender, distribute=True)
            amount = self._claimable.pop(sender, 0)
            if amount:
                self._cash.transfer(self.address, to, amount)
                self._emit("claim", sender, amount, meta={"to": to})
                log.info("vault: claim account=%s to=%s amount=%d", sender, to, amount)
            return amount

    def _update_rewards(self, account: Optional[str], *, distribute: bool) -> None:
        reward = 0
        if distribute and self._distributor is not None:
            result = self._distributor.claim(self.address, self.address, self.address)
            self.last_distribution = result
            reward = result.paid

        reward += self._unallocated_rewards
        self._unallocated_rewards = 0
        if reward:
            if self._tracked_supply > 0:
                self._reward_per_share += reward * REWARD_PRECISION // self._tracked_supply
            else:
                self._unallocated_rewards = reward

        if account is not None:
            balance = self._shares.get(account, 0) // self._divisor(self._haircut)
            delta = self._reward_per_share - self._reward_checkpoint.get(account, 0)
            owed = balance * delta // REWARD_PRECISION
            if owed:
                self._claimable[account] = self._claimable.get(account, 0) + owed
            self._reward_checkpoint[account] = self._reward_per_share

    # --- refunds ---

    def refund(self, sender: str, to: str) -> Amount:
        """
        Redeem all pending burn through the floor, paying `to`. Restricted to
        authorized senders and the governor. Returns the base-currency amount paid.

        Pending burn the floor would price at zero (an empty reserve, or too
        little burn to round up to one unit) is kept for a later refund.
        """
        with self._lock:
            self._governance.require_authorized(sender, "refund")
            self._reconcile()
            burned = self._pending_burn
            if burned == 0:
                return 0
            if self._floor.get_refund_amount(burned) == 0:
                log.debug("vault: refund skipped, floor quotes zero for burned=%d", burned)
                return 0

            paid = self._floor.refund(self.address, to, burned)
            self._pending_burn = 0
            self._refunded += burned
            self._check_conservation()

            self._emit("refund", sender, burned, meta={"to": to, "paid": str(paid)})
            self._record_state()
            log.info("vault: refund sender=%s to=%s burned=%d paid=%d", sender, to, burned, paid)
            return paid

    # --- governance ---

    def set_gov(self, sender: str, new_gov: str) -> None:
        with self._lock:
            self._governance.transfer_governance(sender, new_gov)

    def set_distributor(self, sender: str, distributor: Optional[TimeDistributor]) -> None:
        """Swap the distributor, first pulling what the current one owes the vault."""
        with self._lock:
            self._governance.require_gov(sender, "set_distributor")
            self._reconcile()
            self._update_rewards(None, distribute=True)
            self._distributor = distributor

    def add_sender(self, sender: str, account: str) -> None:
        with self._lock:
            self._governance.add_sender(sender, account)

    def remove_sender(self, sender: str, account: str) -> None:
        with self._lock:
            self._governance.remove_sender(sender, account)

    # --- internal helpers ---

    def _emit(self, op: OpName, account: str, amount: Amount, meta: Optional[Dict[str, str]] = None) -> None:
        self._journal.append(
            VaultEvent(
                seq=len(self._journal) + 1,
                op=op,
                account=account,
                amount=amount,
                share_supply_after=self._tracked_supply,
                pending_burn_after=self._pending_burn,
                meta=dict(meta or {}),
            )
        )

    def _record_state(self) -> None:
        metrics.record_vault_state(self._tracked_supply, self._pending_burn)


__all__ = ["HAIRCUT_PRECISION", "REWARD_PRECISION", "VaultEvent", "BurnVault"]
