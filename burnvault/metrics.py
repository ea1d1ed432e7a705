from __future__ import annotations

"""
Prometheus metrics for the burnvault accounting core.

We expose counters, gauges and histograms covering:
- ledger: transfers, rebases, burned amounts
- vault: deposits, withdrawals (by mode), realized decay, refunds
- floor: refund payouts and reserve level
- distributor: claims by status and paid amounts

Amounts passed to the recording helpers are integer base units; they are
converted to whole tokens (float) using `token_decimals` so histogram buckets
stay readable.
"""


from typing import Optional

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, generate_latest)

# Use a dedicated registry so embedding apps can choose to merge or expose it directly.
REGISTRY = CollectorRegistry()

DEFAULT_DECIMALS = 18

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   mode: "distributed" | "bypass"
#   status: "paid_full" | "paid_partial" | "paid_zero"
#   kind: "burn" | "fund"
# ────────────────────────────────────────────────────────────────────────────────

# Counters
TRANSFERS = Counter(
    "burnvault_ledger_transfers_total",
    "Total ledger transfers by whether fees applied.",
    labelnames=("charged",),
    registry=REGISTRY,
)

REBASES = Counter(
    "burnvault_ledger_rebases_total",
    "Total rebase calls that advanced at least one interval.",
    registry=REGISTRY,
)

REBASE_INTERVALS = Counter(
    "burnvault_ledger_rebase_intervals_total",
    "Total rebase intervals applied to the normal divisor.",
    registry=REGISTRY,
)

FEES_TOKENS = Counter(
    "burnvault_ledger_fees_tokens_total",
    "Transfer fees taken, in tokens, by kind.",
    labelnames=("kind",),
    registry=REGISTRY,
)

DEPOSITS = Counter(
    "burnvault_vault_deposits_total",
    "Total vault deposits.",
    registry=REGISTRY,
)

WITHDRAWALS = Counter(
    "burnvault_vault_withdrawals_total",
    "Total vault withdrawals by mode.",
    labelnames=("mode",),
    registry=REGISTRY,
)

DECAY_REALIZED_TOKENS = Counter(
    "burnvault_vault_decay_realized_tokens_total",
    "Decay moved from vault shares into pending burn, in tokens.",
    registry=REGISTRY,
)

REFUNDS = Counter(
    "burnvault_vault_refunds_total",
    "Total vault refunds that realized pending burn.",
    registry=REGISTRY,
)

DISTRIBUTOR_CLAIMS = Counter(
    "burnvault_distributor_claims_total",
    "Total distributor claims by payout status.",
    labelnames=("status",),
    registry=REGISTRY,
)

# Gauges (real-time snapshots)
PENDING_BURN_TOKENS = Gauge(
    "burnvault_vault_pending_burn_tokens",
    "Decay absorbed by the vault and not yet refunded, in tokens.",
    registry=REGISTRY,
)

SHARE_SUPPLY_TOKENS = Gauge(
    "burnvault_vault_share_supply_tokens",
    "Total decay-adjusted vault share supply, in tokens.",
    registry=REGISTRY,
)

FLOOR_RESERVE = Gauge(
    "burnvault_floor_reserve",
    "Base-currency reserve held by the floor (whole units).",
    registry=REGISTRY,
)

# Histograms
_AMOUNT_BUCKETS = (
    0.001,
    0.01,
    0.1,
    0.5,
    1,
    5,
    10,
    50,
    100,
    500,
    1000,
)

REFUND_PAYOUT = Histogram(
    "burnvault_floor_refund_payout",
    "Distribution of floor refund payouts (whole base-currency units).",
    buckets=_AMOUNT_BUCKETS,
    registry=REGISTRY,
)

DISTRIBUTOR_PAID = Histogram(
    "burnvault_distributor_paid",
    "Distribution of distributor payouts (whole base-currency units).",
    buckets=_AMOUNT_BUCKETS,
    registry=REGISTRY,
)


# ────────────────────────────────────────────────────────────────────────────────
# Recording helpers
# ────────────────────────────────────────────────────────────────────────────────


def to_tokens(amount: int, decimals: int = DEFAULT_DECIMALS) -> float:
    """Convert integer base units into whole tokens."""
    return amount / float(10**decimals)


def record_transfer(charged: bool, burned: int = 0, funded: int = 0) -> None:
    TRANSFERS.labels(charged="yes" if charged else "no").inc()
    if burned > 0:
        FEES_TOKENS.labels(kind="burn").inc(to_tokens(burned))
    if funded > 0:
        FEES_TOKENS.labels(kind="fund").inc(to_tokens(funded))


def record_rebase(intervals: int) -> None:
    """Record a rebase that applied `intervals` divisor steps."""
    REBASES.inc()
    REBASE_INTERVALS.inc(intervals)


def record_deposit() -> None:
    DEPOSITS.inc()


def record_withdrawal(distributed: bool) -> None:
    WITHDRAWALS.labels(mode="distributed" if distributed else "bypass").inc()


def record_vault_state(share_supply: int, pending_burn: int) -> None:
    """Snapshot the vault's share supply and pending burn."""
    SHARE_SUPPLY_TOKENS.set(to_tokens(share_supply))
    PENDING_BURN_TOKENS.set(to_tokens(pending_burn))


def record_decay(realized: int) -> None:
    if realized > 0:
        DECAY_REALIZED_TOKENS.inc(to_tokens(realized))


def record_refund(paid: int, reserve_after: int) -> None:
    REFUNDS.inc()
    REFUND_PAYOUT.observe(to_tokens(paid))
    FLOOR_RESERVE.set(to_tokens(reserve_after))


def record_reserve(reserve: int) -> None:
    FLOOR_RESERVE.set(to_tokens(reserve))


def record_distributor_claim(status: str, paid: int) -> None:
    """Record a distributor claim result; `status` is a ClaimStatus value."""
    DISTRIBUTOR_CLAIMS.labels(status=status).inc()
    if paid > 0:
        DISTRIBUTOR_PAID.observe(to_tokens(paid))


# ────────────────────────────────────────────────────────────────────────────────
# Exposition
# ────────────────────────────────────────────────────────────────────────────────


def render(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Return the text exposition of the registry."""
    return generate_latest(registry or REGISTRY)


def make_prometheus_asgi_app(registry: Optional[CollectorRegistry] = None):
    """
    Return a minimal ASGI app that serves Prometheus metrics at '/'.
    No external web framework required.
    """
    reg = registry or REGISTRY

    async def app(scope, receive, send):  # type: ignore[override]
        if scope["type"] != "http" or (scope.get("path") or "/") != "/":
            await send({"type": "http.response.start", "status": 404, "headers": []})
            await send({"type": "http.response.body", "body": b"Not Found"})
            return
        headers = [
            (b"content-type", CONTENT_TYPE_LATEST.encode("ascii")),
            (b"cache-control", b"no-cache, no-store, must-revalidate"),
        ]
        await send({"type": "http.response.start", "status": 200, "headers": headers})
        await send({"type": "http.response.body", "body": generate_latest(reg)})

    return app


__all__ = [
    "REGISTRY",
    "TRANSFERS",
    "REBASES",
    "REBASE_INTERVALS",
    "FEES_TOKENS",
    "DEPOSITS",
    "WITHDRAWALS",
    "DECAY_REALIZED_TOKENS",
    "REFUNDS",
    "DISTRIBUTOR_CLAIMS",
    "PENDING_BURN_TOKENS",
    "SHARE_SUPPLY_TOKENS",
    "FLOOR_RESERVE",
    "REFUND_PAYOUT",
    "DISTRIBUTOR_PAID",
    "to_tokens",
    "record_transfer",
    "record_rebase",
    "record_deposit",
    "record_withdrawal",
    "record_vault_state",
    "record_decay",
    "record_refund",
    "record_reserve",
    "record_distributor_claim",
    "render",
    "make_prometheus_asgi_app",
]
