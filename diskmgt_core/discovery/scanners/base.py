"""
Base Scanner - Shared plumbing for everything that queries the OS.

Scanners and probes:
1. Run an external utility (lsblk, parted, blkid, lxc)
2. Parse its output
3. Return plain data, never raising for a missing or failing utility
"""

from __future__ import annotations
from typing import List, Optional
import logging
import subprocess
from pathlib import Path


class BaseScanner:
    """
    Base class for OS-facing scanners and probes.

    Subclasses get a logger named after the class and safe helpers for
    running commands and reading files.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self.logger = logging.getLogger(f'diskmgt.scanner.{self.name}')

    @property
    def name(self) -> str:
        """Scanner name for logging."""
        return self.__class__.__name__

    # ─────────────────────────────────────────────────────────────
    # Utility methods for subclasses
    # ─────────────────────────────────────────────────────────────

    def run_command(self, cmd: List[str]) -> tuple[int, str, str]:
        """
        Run a command without a shell.

        A missing binary, a permission error or a timeout is reported as
        exit code -1 with the reason in stderr.

        Returns:
            Tuple of (exit_code, stdout, stderr)
        """
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            return result.returncode, result.stdout, result.stderr
        except subprocess.TimeoutExpired:
            self.logger.warning(f"Command timed out: {' '.join(cmd)}")
            return -1, "", "timeout"
        except FileNotFoundError:
            self.logger.debug(f"Command not found: {cmd[0]}")
            return -1, "", f"command not found: {cmd[0]}"
        except PermissionError:
            self.logger.debug(f"Command not executable: {cmd[0]}")
            return -1, "", f"permission denied: {cmd[0]}"

    def command_exists(self, cmd: str) -> bool:
        """Check if a command exists on the system."""
        code, _, _ = self.run_command(["which", cmd])
        return code == 0

    def read_file(self, path: str) -> str | None:
        """
        Safely read a file.

        Returns:
            File contents or None if not readable.
        """
        try:
            return Path(path).read_text(errors='replace')
        except (OSError, PermissionError) as e:
            self.logger.debug(f"Cannot read {path}: {e}")
            return None
