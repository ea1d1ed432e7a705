from __future__ import annotations
"""
burnvault - self-deflationary ledger with a decay-shielding vault.

A rebasing ledger whose balances shrink on a fixed schedule, a floor that
redeems burned units against a base-currency reserve, a time-based payout
distributor, and a vault that lets depositors decay at a reduced rate while
routing the decay they do suffer to the floor. Submodules are lazily imported
to keep import time minimal.

Public surface (lazily loaded):
- config, errors, metrics, clock
- ledger, floor, distributor, vault, system
- cli
"""


from typing import List

from .version import __version__

__all__: List[str] = [
    "__version__",
    # lazily importable submodules
    "access",
    "cash",
    "cli",
    "clock",
    "config",
    "distributor",
    "errors",
    "floor",
    "ledger",
    "metrics",
    "system",
    "vault",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib

_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)


def get_version() -> str:
    """Return the burnvault package version string."""
    return __version__
