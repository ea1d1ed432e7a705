from __future__ import annotations
"""
burnvault.config — configuration for the decaying ledger, floor, vault and distributor

Covers:
- Ledger supply, rebase cadence and default transfer fees (basis points, 10_000 = 100%)
- Floor refund haircut
- Vault decay share (how much of the ledger's decay vault shares absorb)
- Distributor accrual interval

Environment overrides (all optional; sensible defaults provided):

  # Ledger (base units; seconds; parts-per-million per interval)
  BURNVAULT_INITIAL_SUPPLY=1000000000000000000000
  BURNVAULT_MAX_SUPPLY=2000000000000000000000
  BURNVAULT_REBASE_INTERVAL_S=3600
  BURNVAULT_REBASE_RATE_PPM=100
  BURNVAULT_MAX_NORMAL_DIVISOR=100000000000000000000000

  # Default transfer fees (basis points)
  BURNVAULT_SENDER_BURN_BPS=0
  BURNVAULT_SENDER_FUND_BPS=0
  BURNVAULT_RECEIVER_BURN_BPS=43
  BURNVAULT_RECEIVER_FUND_BPS=7
  BURNVAULT_MAX_FEE_BPS=500

  # Floor
  BURNVAULT_REFUND_BPS=9000

  # Vault
  BURNVAULT_VAULT_DECAY_SHARE_BPS=5000

  # Distributor
  BURNVAULT_DISTRIBUTION_INTERVAL_S=1

You can also load from a JSON or YAML file via `BURNVAULT_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

BPS_DIVISOR = 10_000


def _check_bps(name: str, v: int, upper: int = BPS_DIVISOR) -> None:
    if not (0 <= v <= upper):
        raise ValueError(f"{name} must be between 0 and {upper} bps (got {v}).")


# -------------------------- Data classes --------------------------


@dataclass
class LedgerParams:
    """Supply, rebase cadence and default transfer fees of the decaying asset."""
    initial_supply: int = 1_000 * 10**18
    max_supply: int = 2_000 * 10**18
    rebase_interval_s: int = 3_600            # one rebase step per hour
    rebase_rate_ppm: int = 100                # 0.01% divisor growth per step
    max_normal_divisor: int = 10**23          # rebases stop once reached

    sender_burn_bps: int = 0
    sender_fund_bps: int = 0
    receiver_burn_bps: int = 43
    receiver_fund_bps: int = 7
    max_fee_bps: int = 500                    # cap for any single fee component

    def validate(self) -> None:
        if self.initial_supply < 0 or self.max_supply < 0:
            raise ValueError("Supplies must be non-negative base units.")
        if self.initial_supply > self.max_supply:
            raise ValueError("initial_supply cannot exceed max_supply.")
        if self.rebase_interval_s <= 0:
            raise ValueError("rebase_interval_s must be positive.")
        if not (0 <= self.rebase_rate_ppm <= 1_000_000):
            raise ValueError(f"rebase_rate_ppm must be in [0, 1000000] (got {self.rebase_rate_ppm}).")
        if self.max_normal_divisor <= 0:
            raise ValueError("max_normal_divisor must be positive.")
        _check_bps("max_fee_bps", self.max_fee_bps)
        for name, v in (("sender_burn_bps", self.sender_burn_bps),
                        ("sender_fund_bps", self.sender_fund_bps),
                        ("receiver_burn_bps", self.receiver_burn_bps),
                        ("receiver_fund_bps", self.receiver_fund_bps)):
            _check_bps(name, v, self.max_fee_bps)


@dataclass
class FloorParams:
    """Share of the proportional reserve value paid out per burned unit."""
    refund_bps: int = 9_000   # 90%

    def validate(self) -> None:
        _check_bps("refund_bps", self.refund_bps)


@dataclass
class VaultParams:
    """Fraction of the ledger's divisor growth applied to vault shares."""
    decay_share_bps: int = 5_000   # vault depositors decay at half speed

    def validate(self) -> None:
        _check_bps("decay_share_bps", self.decay_share_bps)


@dataclass
class DistributorParams:
    """Granularity of distributor accrual; only whole intervals are paid."""
    interval_s: int = 1

    def validate(self) -> None:
        if self.interval_s <= 0:
            raise ValueError("interval_s must be positive.")


@dataclass
class BurnVaultConfig:
    """Top-level configuration container."""
    ledger: LedgerParams = field(default_factory=LedgerParams)
    floor: FloorParams = field(default_factory=FloorParams)
    vault: VaultParams = field(default_factory=VaultParams)
    distributor: DistributorParams = field(default_factory=DistributorParams)

    token_decimals: int = 18  # informational, used for metrics and CLI output

    def validate(self) -> None:
        self.ledger.validate()
        self.floor.validate()
        self.vault.validate()
        self.distributor.validate()
        if self.token_decimals <= 0:
            raise ValueError("token_decimals must be positive.")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------- Loaders --------------------------


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(str(v).replace("_", ""))
    except ValueError as e:
        raise ValueError(f"Invalid int for {name}: {v!r}") from e


def _getenv_bps(name: str, default: int) -> int:
    bps = _getenv_int(name, default)
    if not (0 <= bps <= BPS_DIVISOR):
        raise ValueError(f"{name} must be between 0 and 10000 bps (got {bps}).")
    return bps


def from_env(base: Optional[BurnVaultConfig] = None, prefix: str = "BURNVAULT_") -> BurnVaultConfig:
    """
    Build a BurnVaultConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or BurnVaultConfig()
    lp = cfg.ledger

    ledger = LedgerParams(
        initial_supply=_getenv_int(f"{prefix}INITIAL_SUPPLY", lp.initial_supply),
        max_supply=_getenv_int(f"{prefix}MAX_SUPPLY", lp.max_supply),
        rebase_interval_s=_getenv_int(f"{prefix}REBASE_INTERVAL_S", lp.rebase_interval_s),
        rebase_rate_ppm=_getenv_int(f"{prefix}REBASE_RATE_PPM", lp.rebase_rate_ppm),
        max_normal_divisor=_getenv_int(f"{prefix}MAX_NORMAL_DIVISOR", lp.max_normal_divisor),
        sender_burn_bps=_getenv_bps(f"{prefix}SENDER_BURN_BPS", lp.sender_burn_bps),
        sender_fund_bps=_getenv_bps(f"{prefix}SENDER_FUND_BPS", lp.sender_fund_bps),
        receiver_burn_bps=_getenv_bps(f"{prefix}RECEIVER_BURN_BPS", lp.receiver_burn_bps),
        receiver_fund_bps=_getenv_bps(f"{prefix}RECEIVER_FUND_BPS", lp.receiver_fund_bps),
        max_fee_bps=_getenv_bps(f"{prefix}MAX_FEE_BPS", lp.max_fee_bps),
    )

    new_cfg = BurnVaultConfig(
        ledger=ledger,
        floor=FloorParams(refund_bps=_getenv_bps(f"{prefix}REFUND_BPS", cfg.floor.refund_bps)),
        vault=VaultParams(
            decay_share_bps=_getenv_bps(f"{prefix}VAULT_DECAY_SHARE_BPS", cfg.vault.decay_share_bps)
        ),
        distributor=DistributorParams(
            interval_s=_getenv_int(f"{prefix}DISTRIBUTION_INTERVAL_S", cfg.distributor.interval_s)
        ),
        token_decimals=_getenv_int(f"{prefix}TOKEN_DECIMALS", cfg.token_decimals),
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> BurnVaultConfig:
    """
    Load configuration from a JSON or YAML file. Missing sections fall back to defaults.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")

    def section(cls, key: str):
        known = {f for f in cls.__dataclass_fields__}
        raw = data.get(key) or {}
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"Unknown keys in [{key}]: {sorted(unknown)}")
        return cls(**raw)

    cfg = BurnVaultConfig(
        ledger=section(LedgerParams, "ledger"),
        floor=section(FloorParams, "floor"),
        vault=section(VaultParams, "vault"),
        distributor=section(DistributorParams, "distributor"),
        token_decimals=data.get("token_decimals", BurnVaultConfig().token_decimals),
    )
    cfg.validate()
    return cfg


def load() -> BurnVaultConfig:
    """
    Load configuration using the following precedence:
      1) File at $BURNVAULT_CONFIG_FILE (JSON/YAML)
      2) Environment variables (BURNVAULT_*), applied on top of defaults or file values
    """
    file_path = os.getenv("BURNVAULT_CONFIG_FILE")
    base = from_file(file_path) if file_path else BurnVaultConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[BurnVaultConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "BPS_DIVISOR",
    "LedgerParams",
    "FloorParams",
    "VaultParams",
    "DistributorParams",
    "BurnVaultConfig",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
