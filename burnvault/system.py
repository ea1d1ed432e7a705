from __future__ import annotations

"""
burnvault.system — wiring for a consistent component set
--------------------------------------------------------

`build_system` constructs the ledger, floor, distributor and vault over one
cash book and performs the registrations they depend on:

- the floor is bound as the ledger's only burner;
- the vault account becomes a safe, so its holdings do not rebase;
- the vault operator transfers fee-free;
- the vault is an authorized floor caller.

Everything is governed by a single `gov` account to begin with; components can
hand governance off independently afterwards.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from burnvault.cash import CashBook
from burnvault.clock import Clock
from burnvault.config import BurnVaultConfig
from burnvault.distributor import TimeDistributor
from burnvault.floor import Floor
from burnvault.ledger import Ledger, TransferConfig
from burnvault.vault import BurnVault

log = logging.getLogger(__name__)


@dataclass
class System:
    config: BurnVaultConfig
    cash: CashBook
    ledger: Ledger
    floor: Floor
    distributor: TimeDistributor
    vault: BurnVault
    gov: str

    def snapshot(self) -> dict:
        """Plain-data view of the headline numbers, for CLIs and logs."""
        return {
            "normal_divisor": self.ledger.normal_divisor,
            "vault_divisor": self.vault.divisor(),
            "total_supply": self.ledger.total_supply(),
            "vault_held": self.vault.held_balance(),
            "share_supply": self.vault.total_share_supply(),
            "pending_burn": self.vault.pending_burn(),
            "floor_reserve": self.floor.reserve_balance(),
            "distributor_funds": self.distributor.funds(),
        }


def build_system(
    cfg: Optional[BurnVaultConfig] = None,
    *,
    gov: str = "gov",
    clock: Clock | None = None,
    with_distributor: bool = True,
) -> System:
    """
    Build and register all components. With `with_distributor=False` the
    distributor is still constructed but not attached to the vault.
    """
    cfg = cfg or BurnVaultConfig()
    cfg.validate()

    cash = CashBook()
    ledger = Ledger(cfg.ledger, gov=gov, clock=clock)
    floor = Floor(ledger, cash, gov=gov, params=cfg.floor)
    distributor = TimeDistributor(cash, gov=gov, params=cfg.distributor, clock=clock)
    vault = BurnVault(
        ledger,
        floor,
        cash,
        gov=gov,
        params=cfg.vault,
        distributor=distributor if with_distributor else None,
    )

    ledger.set_floor(gov, floor.address)
    ledger.create_safe(gov, vault.address)
    ledger.set_transfer_config(gov, vault.address, TransferConfig())
    floor.add_caller(gov, vault.address)

    log.info("system: built ledger supply=%d vault=%s floor=%s",
             ledger.total_supply(), vault.address, floor.address)
    return System(
        config=cfg,
        cash=cash,
        ledger=ledger,
        floor=floor,
        distributor=distributor,
        vault=vault,
        gov=gov,
    )


__all__ = ["System", "build_system"]
