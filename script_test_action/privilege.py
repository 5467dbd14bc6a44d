"""Detection of elevated privileges on the host running the harness."""

import ctypes
import logging
import os
import sys
from dataclasses import dataclass
from typing import Protocol

log = logging.getLogger(__name__)


class PrivilegeProbe(Protocol):
    """Capability answering whether this process holds elevated privileges."""

    def is_privileged(self) -> bool:
        """Return True when running as superuser/administrator."""


@dataclass(frozen=True)
class PosixPrivilegeProbe:
    """Superuser check for Linux and macOS: effective uid 0."""

    def is_privileged(self) -> bool:
        """Return True when the effective user is root."""
        return os.geteuid() == 0


@dataclass(frozen=True)
class WindowsPrivilegeProbe:
    """Administrator check for Windows through the shell32 API."""

    def is_privileged(self) -> bool:
        """Return True when the process token is elevated."""
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
        except (AttributeError, OSError) as exc:
            log.warning("Cannot determine administrator status: %s", exc)
            return False


@dataclass(frozen=True)
class FixedPrivilegeProbe:
    """Probe with a predetermined answer."""

    privileged: bool

    def is_privileged(self) -> bool:
        """Return the configured answer."""
        return self.privileged


def select_privilege_probe(platform: str = sys.platform) -> PrivilegeProbe:
    """Pick the privilege probe for the host platform."""
    if platform == "win32":
        return WindowsPrivilegeProbe()
    return PosixPrivilegeProbe()
