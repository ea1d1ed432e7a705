from __future__ import annotations

"""
burnvault.cli.simulate
----------------------

Run the two-depositor decay scenario on a manual clock and print the resolved
configuration.

Scenario
--------
1) `gov` transfers `--amount` to user0 (fees apply), user0 deposits what arrived.
2) `--hours` pass; the vault reconciles.
3) The same for user2, who joins late.
4) Another `--hours` pass; the vault reconciles.
5) Optionally the pending burn is refunded against a floor reserve of `--reserve`.

Examples
--------
python -m burnvault.cli.simulate scenario
python -m burnvault.cli.simulate scenario --hours 40 --reserve 500 --json
python -m burnvault.cli.simulate scenario --rate 1000000 --fund 10000000000
BURNVAULT_REBASE_RATE_PPM=200 python -m burnvault.cli.simulate config
"""

import json
from typing import Any, Dict, Optional

import typer

from burnvault import config as cfgmod
from burnvault.clock import ManualClock
from burnvault.errors import BurnVaultError
from burnvault.system import System, build_system

app = typer.Typer(
    name="burnvault-simulate",
    add_completion=False,
    no_args_is_help=True,
    help="Simulate ledger decay, vault shares and floor refunds on a manual clock.",
)


# -------------------- utils --------------------


def _units(x: float, decimals: int) -> int:
    return int(round(x * 10**decimals))


def _fmt(amount: int, decimals: int) -> str:
    """Whole tokens with up to 6 decimals, trailing zeros stripped."""
    s = f"{amount / 10**decimals:.6f}".rstrip("0").rstrip(".")
    return s if s else "0"


def _join(system: System, user: str, amount: int) -> int:
    ledger, vault = system.ledger, system.vault
    ledger.transfer(system.gov, user, amount)
    received = ledger.balance_of(user)
    ledger.approve(user, vault.address, received)
    vault.deposit(user, received)
    return received


def run_scenario(
    *,
    hours: int = 20,
    amount: float = 200.0,
    reserve: float = 0.0,
    rate: int = 0,
    fund: int = 0,
    refund: bool = True,
    cfg: Optional[cfgmod.BurnVaultConfig] = None,
) -> Dict[str, Any]:
    """Execute the scenario and return plain data (amounts in base units)."""
    cfg = cfg or cfgmod.load()
    dec = cfg.token_decimals
    clock = ManualClock()
    system = build_system(cfg, clock=clock)
    vault = system.vault

    if reserve:
        system.cash.credit(system.gov, _units(reserve, dec))
        system.floor.fund(system.gov, _units(reserve, dec))
    if rate:
        system.cash.credit(system.gov, fund)
        system.distributor.fund(system.gov, fund)
        system.distributor.set_distribution(system.gov, [vault.address], [rate])

    deposited = {"user0": _join(system, "user0", _units(amount, dec))}
    clock.advance_hours(hours)
    vault.sync()
    checkpoint = {"hours": hours, **system.snapshot(), "user0": vault.balance_of("user0")}

    deposited["user2"] = _join(system, "user2", _units(amount, dec))
    clock.advance_hours(hours)
    vault.sync()

    users = {}
    for user, dep in deposited.items():
        bal = vault.balance_of(user)
        users[user] = {"deposited": dep, "balance": bal, "burned": dep - bal,
                       "claimable": vault.claimable(user)}

    final: Dict[str, Any] = {"hours": 2 * hours, **system.snapshot()}
    if refund:
        final["refund_burned"] = vault.pending_burn()
        final["refund_paid"] = vault.refund(system.gov, system.gov)
        final["pending_after_refund"] = vault.pending_burn()
        final["floor_reserve"] = system.floor.reserve_balance()

    return {"decimals": dec, "checkpoint": checkpoint, "final": final, "users": users}


def _print_report(result: Dict[str, Any]) -> None:
    dec = result["decimals"]
    cp, final = result["checkpoint"], result["final"]
    typer.secho(f"After {cp['hours']}h:", bold=True)
    typer.echo(f"  user0 share     {_fmt(cp['user0'], dec)}")
    typer.echo(f"  pending burn    {_fmt(cp['pending_burn'], dec)}")
    typer.echo(f"  vault divisor   {cp['vault_divisor']}")
    typer.echo("")
    typer.secho(f"After {final['hours']}h:", bold=True)
    for user, row in result["users"].items():
        typer.echo(
            f"  {user:<6} deposited {_fmt(row['deposited'], dec)}  share {_fmt(row['balance'], dec)}"
            f"  burned {_fmt(row['burned'], dec)}"
        )
    typer.echo(f"  pending burn    {_fmt(final['pending_burn'], dec)}")
    typer.echo(f"  ledger divisor  {final['normal_divisor']}")
    typer.echo(f"  vault divisor   {final['vault_divisor']}")
    if "refund_paid" in final:
        typer.echo(
            f"  refund          burned {_fmt(final['refund_burned'], dec)}"
            f"  paid {_fmt(final['refund_paid'], dec)}"
        )


# -------------------- commands --------------------


@app.command("scenario")
def scenario_cmd(
    hours: int = typer.Option(20, min=0, help="Hours between the two deposits and after the second."),
    amount: float = typer.Option(200.0, min=0.0, help="Tokens transferred to each depositor before fees."),
    reserve: float = typer.Option(0.0, min=0.0, help="Floor reserve in base-currency tokens."),
    rate: int = typer.Option(0, min=0, help="Distributor rate to the vault (base units per second)."),
    fund: int = typer.Option(0, min=0, help="Distributor funds (base units)."),
    refund: bool = typer.Option(True, "--refund/--no-refund", help="Refund the pending burn at the end."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Run the two-depositor scenario."""
    try:
        result = run_scenario(hours=hours, amount=amount, reserve=reserve, rate=rate, fund=fund, refund=refund)
    except (BurnVaultError, ValueError) as e:
        typer.secho(f"scenario failed: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    if json_out:
        typer.echo(json.dumps(result, indent=2, sort_keys=True))
        return
    _print_report(result)


@app.command("config")
def config_cmd(
    file: Optional[str] = typer.Option(None, "--file", help="JSON/YAML config file (defaults to $BURNVAULT_CONFIG_FILE)."),
) -> None:
    """Print the resolved configuration as JSON."""
    try:
        cfg = cfgmod.from_env(cfgmod.from_file(file)) if file else cfgmod.load()
    except (OSError, ValueError) as e:
        typer.secho(f"invalid config: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2)
    typer.echo(cfgmod.pretty(cfg))


def get_app() -> typer.Typer:
    return app


if __name__ == "__main__":
    app()
