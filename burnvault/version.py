from __future__ import annotations

"""
burnvault.version — semantic version string with optional git-describe suffix.

Rules:
- BASE_VERSION is the semver for this package.
- If BURNVAULT_VERSION is set in the environment, that wins.
- Inside a git checkout, a PEP440 local suffix derived from
  `git describe --tags --dirty --always --abbrev=7` is appended, e.g.:
    0.1.0+3.gabc1234          (3 commits after tag v0.1.0)
    0.1.0+gabc1234.dirty      (no tag, dirty tree)
- Without git (or outside a checkout) the result is BASE_VERSION.
"""


import os
import re
import subprocess
from typing import Optional

# Bump this on intentional releases.
BASE_VERSION = "0.1.0"

_LOCAL_UNSAFE = re.compile(r"[^a-zA-Z0-9.]+")


def _git_describe() -> Optional[str]:
    try:
        out = subprocess.check_output(
            ["git", "describe", "--tags", "--dirty", "--always", "--abbrev=7"],
            stderr=subprocess.DEVNULL,
            cwd=os.path.dirname(os.path.abspath(__file__)),
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return out.decode("utf-8", "replace").strip() or None


def local_suffix(desc: str) -> str:
    """
    Turn a `git describe` string into a PEP440 local segment.

    The base tag itself is dropped (it is BASE_VERSION's job), dashes become
    dots and anything outside [a-zA-Z0-9.] collapses to a dot.
    """
    s = re.sub(r"^v?\d+(\.\d+)*-", "", desc)
    s = _LOCAL_UNSAFE.sub(".", s.replace("-", "."))
    s = re.sub(r"\.{2,}", ".", s).strip(".")
    return s or "git"


def build_version() -> str:
    v = os.getenv("BURNVAULT_VERSION")
    if v:
        return v
    desc = _git_describe()
    if not desc:
        return BASE_VERSION
    return f"{BASE_VERSION}+{local_suffix(desc)}"


__version__ = build_version()


def get_version() -> str:
    """Public helper returning the resolved version string."""
    return __version__


__all__ = ["__version__", "get_version", "BASE_VERSION", "local_suffix"]
