"""markpatch core: startup safety checks."""

from __future__ import annotations

import os
from typing import Mapping, Optional

from .errors import EXIT_PRIVILEGED, PreconditionError


def ensure_unprivileged(env: Optional[Mapping[str, str]] = None, euid: Optional[int] = None) -> None:
    """Refuse to run as root or through sudo."""
    env = os.environ if env is None else env
    if euid is None:
        euid = os.geteuid() if hasattr(os, "geteuid") else -1
    if euid == 0 or env.get("SUDO_USER"):
        raise PreconditionError("Refusing to run as root or via sudo.", EXIT_PRIVILEGED)
