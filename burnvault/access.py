from __future__ import annotations

"""
Single-governor access control.

Each component holds its own `Governance` value instead of reading a global:
one governor account plus an optional set of authorized senders. Governance
handoff is a direct single step (no timelock).
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Set

from burnvault.errors import Forbidden

log = logging.getLogger(__name__)


@dataclass
class Governance:
    gov: str
    senders: Set[str] = field(default_factory=set)
    component: str = ""

    def is_gov(self, sender: str) -> bool:
        return sender == self.gov

    def is_authorized(self, sender: str) -> bool:
        """Governor or an explicitly added sender."""
        return sender == self.gov or sender in self.senders

    def require_gov(self, sender: str, action: str) -> None:
        if sender != self.gov:
            raise Forbidden(sender=sender, action=f"{self.component}.{action}".lstrip("."))

    def require_authorized(self, sender: str, action: str) -> None:
        if not self.is_authorized(sender):
            raise Forbidden(sender=sender, action=f"{self.component}.{action}".lstrip("."))

    def transfer_governance(self, sender: str, new_gov: str) -> None:
        self.require_gov(sender, "set_gov")
        log.info("%s: governance %s -> %s", self.component or "gov", self.gov, new_gov)
        self.gov = new_gov

    def add_sender(self, sender: str, account: str) -> None:
        self.require_gov(sender, "add_sender")
        self.senders.add(account)

    def remove_sender(self, sender: str, account: str) -> None:
        self.require_gov(sender, "remove_sender")
        self.senders.discard(account)

    def authorized(self) -> FrozenSet[str]:
        return frozenset(self.senders)


__all__ = ["Governance"]
