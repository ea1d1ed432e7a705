from __future__ import annotations

"""
burnvault.ledger — the self-deflationary asset
----------------------------------------------

Balances are stored as *scaled shares*. A normal account holding `b` units
stores `b * normal_divisor`; its balance is `shares // normal_divisor`. A
rebase grows `normal_divisor`, which contracts every normal balance at once
without touching per-account state. The remainder of the integer division
stays in the account's shares, so fractional burn is never charged twice.

Exempt accounts ("safes") are scaled by a constant `safe_divisor` and are
untouched by the rebase. Transfers touching a safe move value at face value;
all other transfers pay the operator's fees (burn and fund portions, in basis
points).

Invariants
  • total_supply() == sum(balance_of(a) for every account)
  • normal_divisor never decreases
  • every failed operation leaves state untouched

Concurrency: one `threading.RLock` (`Ledger.lock`) guards all state. The floor
and vault built on a ledger share this lock, so one asset instance is one
critical section.
"""

import logging
import time
from dataclasses import dataclass, field
from threading import RLock
from typing import Callable, Dict, List, Literal, Optional, Set, Tuple

from burnvault import metrics
from burnvault.access import Governance
from burnvault.config import BPS_DIVISOR, LedgerParams
from burnvault.errors import (AllowanceExceeded, AlreadyInitialized, Forbidden,
                              InsufficientAmount, InsufficientBalance,
                              TransferLimitExceeded)

log = logging.getLogger(__name__)

Amount = int
INITIAL_DIVISOR = 10**8
RATE_PRECISION = 1_000_000

OpName = Literal[
    "mint",
    "transfer",
    "burn",
    "rebase",
    "create_safe",
    "remove_safe",
]


@dataclass(frozen=True)
class TransferConfig:
    """
    Per-operator transfer rules. Fee components are basis points of the
    transferred amount: sender-side fees are charged on top of the amount,
    receiver-side fees are deducted from it. A zero limit means unlimited.
    """

    sender_burn_bps: int = 0
    sender_fund_bps: int = 0
    receiver_burn_bps: int = 0
    receiver_fund_bps: int = 0
    max_transfer_amount: Amount = 0
    min_holding_amount: Amount = 0

    @classmethod
    def from_params(cls, p: LedgerParams) -> "TransferConfig":
        return cls(
            sender_burn_bps=p.sender_burn_bps,
            sender_fund_bps=p.sender_fund_bps,
            receiver_burn_bps=p.receiver_burn_bps,
            receiver_fund_bps=p.receiver_fund_bps,
        )

    def validate(self, max_fee_bps: int) -> None:
        for name, v in (("sender_burn_bps", self.sender_burn_bps),
                        ("sender_fund_bps", self.sender_fund_bps),
                        ("receiver_burn_bps", self.receiver_burn_bps),
                        ("receiver_fund_bps", self.receiver_fund_bps)):
            if not (0 <= v <= max_fee_bps):
                raise ValueError(f"{name} must be between 0 and {max_fee_bps} bps (got {v}).")
        if self.max_transfer_amount < 0 or self.min_holding_amount < 0:
            raise ValueError("transfer limits must be non-negative")


@dataclass(frozen=True)
class TransferQuote:
    """What a transfer would do: `debit` leaves the sender, `credit` reaches the recipient."""

    debit: Amount
    credit: Amount
    burned: Amount
    funded: Amount
    charged: bool


@dataclass(frozen=True)
class LedgerEvent:
    seq: int
    op: OpName
    timestamp: int
    account: str = ""
    counterparty: str = ""
    amount: Amount = 0
    burned: Amount = 0
    funded: Amount = 0
    meta: Dict[str, str] = field(default_factory=dict)


class Ledger:
    """
    In-memory ledger of the decaying asset.

    `initial_supply` is minted to `gov` at construction. The rebase clock
    starts at construction time.
    """

    def __init__(
        self,
        params: Optional[LedgerParams] = None,
        *,
        gov: str,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.params = params or LedgerParams()
        self.params.validate()
        self.lock = RLock()
        self._clock = clock or time.time
        self._governance = Governance(gov=gov, component="ledger")

        self._shares: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], Amount] = {}
        self._safes: Set[str] = set()
        self._configs: Dict[str, TransferConfig] = {}
        self._default_config = TransferConfig.from_params(self.params)

        self._normal_divisor = INITIAL_DIVISOR
        self._safe_divisor = INITIAL_DIVISOR
        self._last_rebase_time = self._now()
        self._fund: Optional[str] = None
        self._floor: Optional[str] = None
        self._journal: List[LedgerEvent] = []

        if self.params.initial_supply:
            self._credit(gov, self.params.initial_supply)
            self._emit("mint", account=gov, amount=self.params.initial_supply)

    # --- introspection ---

    @property
    def gov(self) -> str:
        return self._governance.gov

    @property
    def normal_divisor(self) -> int:
        return self._normal_divisor

    @property
    def safe_divisor(self) -> int:
        return self._safe_divisor

    @property
    def last_rebase_time(self) -> int:
        return self._last_rebase_time

    @property
    def fund(self) -> Optional[str]:
        return self._fund

    @property
    def floor(self) -> Optional[str]:
        return self._floor

    def is_safe(self, account: str) -> bool:
        return account in self._safes

    def balance_of(self, account: str) -> Amount:
        return self._shares.get(account, 0) // self._divisor_of(account)

    def total_supply(self) -> Amount:
        with self.lock:
            return sum(self.balance_of(a) for a in self._shares)

    def balances(self) -> Dict[str, Amount]:
        with self.lock:
            out = {a: self.balance_of(a) for a in sorted(self._shares)}
            return {a: b for a, b in out.items() if b}

    def allowance(self, owner: str, spender: str) -> Amount:
        return self._allowances.get((owner, spender), 0)

    def transfer_config_of(self, operator: str) -> TransferConfig:
        return self._configs.get(operator, self._default_config)

    def pending_intervals(self) -> int:
        """Whole rebase intervals elapsed since the last rebase."""
        elapsed = self._now() - self._last_rebase_time
        return max(0, elapsed // self.params.rebase_interval_s)

    def projected_divisor(self) -> int:
        """Normal divisor once the pending intervals are applied (no state change)."""
        return self._grow(self._normal_divisor, self.pending_intervals())

    def projected_balance_of(self, account: str) -> Amount:
        """`balance_of` as the next rebase would leave it."""
        if account in self._safes:
            return self._shares.get(account, 0) // self._safe_divisor
        return self._shares.get(account, 0) // self.projected_divisor()

    def events(self) -> Tuple[LedgerEvent, ...]:
        return tuple(self._journal)

    def quote_transfer(self, operator: str, sender: str, to: str, amount: Amount) -> TransferQuote:
        """Pure fee computation for a transfer run by `operator`."""
        if sender in self._safes or to in self._safes:
            return TransferQuote(debit=amount, credit=amount, burned=0, funded=0, charged=False)

        cfg = self.transfer_config_of(operator)
        sender_burn = amount * cfg.sender_burn_bps // BPS_DIVISOR
        sender_fund = amount * cfg.sender_fund_bps // BPS_DIVISOR
        receiver_burn = amount * cfg.receiver_burn_bps // BPS_DIVISOR
        receiver_fund = amount * cfg.receiver_fund_bps // BPS_DIVISOR

        burned = sender_burn + receiver_burn
        funded = sender_fund + receiver_fund
        if self._fund is None:
            # no fund account: the fund share is burned as well
            burned += funded
            funded = 0
        return TransferQuote(
            debit=amount + sender_burn + sender_fund,
            credit=amount - receiver_burn - receiver_fund,
            burned=burned,
            funded=funded,
            charged=True,
        )

    # --- transfers ---

    def approve(self, owner: str, spender: str, amount: Amount) -> None:
        if amount < 0:
            raise InsufficientAmount("approval must be non-negative", amount=amount)
        with self.lock:
            self._allowances[(owner, spender)] = amount

    def transfer(self, sender: str, to: str, amount: Amount) -> TransferQuote:
        with self.lock:
            return self._transfer(sender, sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: Amount) -> TransferQuote:
        """Move `amount` from `owner` on behalf of `spender`, consuming allowance."""
        with self.lock:
            current = self.allowance(owner, spender)
            if current < amount:
                raise AllowanceExceeded(owner=owner, spender=spender, required=amount, allowance=current)
            quote = self._transfer(spender, owner, to, amount)
            self._allowances[(owner, spender)] = current - amount
            return quote

    def _transfer(self, operator: str, sender: str, to: str, amount: Amount) -> TransferQuote:
        if amount < 0:
            raise InsufficientAmount("transfer amount must be non-negative", amount=amount)
        self._rebase()

        quote = self.quote_transfer(operator, sender, to, amount)
        have = self.balance_of(sender)
        if have < quote.debit:
            raise InsufficientBalance(account=sender, required=quote.debit, available=have)
        if quote.charged:
            self._check_limits(operator, sender, amount, have - quote.debit)

        self._debit(sender, quote.debit)
        self._credit(to, quote.credit)
        if quote.funded:
            self._credit(self._fund, quote.funded)  # type: ignore[arg-type]

        self._emit(
            "transfer",
            account=sender,
            counterparty=to,
            amount=amount,
            burned=quote.burned,
            funded=quote.funded,
            meta={"operator": operator} if operator != sender else {},
        )
        metrics.record_transfer(quote.charged, quote.burned, quote.funded)
        log.debug("ledger: transfer %s -> %s amount=%d burned=%d funded=%d",
                  sender, to, amount, quote.burned, quote.funded)
        return quote

    def _check_limits(self, operator: str, sender: str, amount: Amount, remaining: Amount) -> None:
        cfg = self.transfer_config_of(operator)
        if cfg.max_transfer_amount and amount > cfg.max_transfer_amount:
            raise TransferLimitExceeded(
                "transfer exceeds max transfer amount",
                details={"operator": operator, "amount": amount, "max": cfg.max_transfer_amount},
            )
        if cfg.min_holding_amount and 0 < remaining < cfg.min_holding_amount:
            raise TransferLimitExceeded(
                "remaining balance below min holding amount",
                details={"account": sender, "remaining": remaining, "min": cfg.min_holding_amount},
            )

    # --- rebase ---

    def rebase(self) -> bool:
        """
        Apply every whole rebase interval elapsed since the last rebase.

        Each interval grows the normal divisor by `rebase_rate_ppm` (rounded
        down, capped at `max_normal_divisor`). Returns False when no whole
        interval has elapsed; leftover seconds carry over to the next call.
        """
        with self.lock:
            return self._rebase()

    def _rebase(self) -> bool:
        intervals = self.pending_intervals()
        if intervals <= 0:
            return False

        self._last_rebase_time += intervals * self.params.rebase_interval_s
        before = self._normal_divisor
        divisor = self._grow(before, intervals)
        self._normal_divisor = divisor

        self._emit(
            "rebase",
            meta={"intervals": str(intervals), "divisor_before": str(before), "divisor_after": str(divisor)},
        )
        metrics.record_rebase(intervals)
        log.info("ledger: rebase intervals=%d divisor=%d->%d", intervals, before, divisor)
        return True

    # --- governance ---

    def set_gov(self, sender: str, new_gov: str) -> None:
        with self.lock:
            self._governance.transfer_governance(sender, new_gov)

    def create_safe(self, sender: str, account: str) -> None:
        """Exempt `account` from rebase decay and transfer fees."""
        with self.lock:
            self._governance.require_gov(sender, "create_safe")
            if account in self._safes:
                return
            self._rebase()
            balance = self.balance_of(account)
            self._safes.add(account)
            self._shares[account] = balance * self._safe_divisor
            self._emit("create_safe", account=account, amount=balance)

    def remove_safe(self, sender: str, account: str) -> None:
        with self.lock:
            self._governance.require_gov(sender, "remove_safe")
            if account not in self._safes:
                return
            self._rebase()
            balance = self.balance_of(account)
            self._safes.discard(account)
            self._shares[account] = balance * self._normal_divisor
            self._emit("remove_safe", account=account, amount=balance)

    def set_transfer_config(self, sender: str, operator: str, config: TransferConfig) -> None:
        with self.lock:
            self._governance.require_gov(sender, "set_transfer_config")
            config.validate(self.params.max_fee_bps)
            self._configs[operator] = config

    def clear_transfer_config(self, sender: str, operator: str) -> None:
        with self.lock:
            self._governance.require_gov(sender, "clear_transfer_config")
            self._configs.pop(operator, None)

    def set_fund(self, sender: str, fund: Optional[str]) -> None:
        with self.lock:
            self._governance.require_gov(sender, "set_fund")
            self._fund = fund

    def set_floor(self, sender: str, floor: str) -> None:
        """Bind the floor allowed to burn; can only be done once."""
        with self.lock:
            self._governance.require_gov(sender, "set_floor")
            if self._floor is not None:
                raise AlreadyInitialized(field="floor")
            self._floor = floor

    # --- supply changes ---

    def mint(self, sender: str, to: str, amount: Amount) -> None:
        with self.lock:
            self._governance.require_gov(sender, "mint")
            if amount <= 0:
                raise InsufficientAmount("mint amount must be positive", amount=amount)
            self._rebase()
            if self.total_supply() + amount > self.params.max_supply:
                raise InsufficientAmount(
                    "max supply exceeded",
                    amount=amount,
                    details={"max_supply": self.params.max_supply},
                )
            self._credit(to, amount)
            self._emit("mint", account=to, amount=amount)

    def burn(self, sender: str, account: str, amount: Amount) -> None:
        """Destroy `amount` held by `account`. Only the bound floor may burn."""
        with self.lock:
            if self._floor is None or sender != self._floor:
                raise Forbidden(sender=sender, action="ledger.burn")
            if amount <= 0:
                raise InsufficientAmount("burn amount must be positive", amount=amount)
            self._rebase()
            have = self.balance_of(account)
            if have < amount:
                raise InsufficientBalance(account=account, required=amount, available=have)
            self._debit(account, amount)
            self._emit("burn", account=account, amount=amount, burned=amount)
            log.info("ledger: burn account=%s amount=%d", account, amount)

    # --- internal helpers ---

    def _now(self) -> int:
        return int(self._clock())

    def _grow(self, divisor: int, intervals: int) -> int:
        step = RATE_PRECISION + self.params.rebase_rate_ppm
        for _ in range(intervals):
            nxt = divisor * step // RATE_PRECISION
            if nxt > self.params.max_normal_divisor:
                break
            divisor = nxt
        return divisor

    def _divisor_of(self, account: str) -> int:
        return self._safe_divisor if account in self._safes else self._normal_divisor

    def _credit(self, account: str, amount: Amount) -> None:
        self._shares[account] = self._shares.get(account, 0) + amount * self._divisor_of(account)

    def _debit(self, account: str, amount: Amount) -> None:
        self._shares[account] = self._shares.get(account, 0) - amount * self._divisor_of(account)

    def _emit(self, op: OpName, **kw) -> LedgerEvent:
        ev = LedgerEvent(seq=len(self._journal) + 1, op=op, timestamp=self._now(), **kw)
        self._journal.append(ev)
        return ev


__all__ = [
    "INITIAL_DIVISOR",
    "RATE_PRECISION",
    "TransferConfig",
    "TransferQuote",
    "LedgerEvent",
    "Ledger",
]
