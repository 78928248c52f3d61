"""Sandbox checks for checkout paths."""

import logging
import subprocess
from pathlib import Path
from typing import Protocol

from infrascout.exceptions import PathSecurityError
from infrascout.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class DiskUsageProbe(Protocol):
    """Reports the recursive on-disk size of a directory."""

    def size_bytes(self, path: Path) -> int: ...


class DuDiskUsageProbe:
    """Disk usage via a single blocking `du -sk` call."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def size_bytes(self, path: Path) -> int:
        try:
            completed = subprocess.run(
                ["du", "-sk", str(path)],
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise PathSecurityError(f"Could not measure size of {path}: {e}") from e

        try:
            kilobytes = int(completed.stdout.split()[0])
        except (IndexError, ValueError) as e:
            raise PathSecurityError(f"Unexpected du output for {path}: {completed.stdout!r}") from e
        return kilobytes * 1024


class PathGuard:
    """Rejects checkouts outside the scratch root or above the size ceiling."""

    def __init__(
        self,
        settings: Settings | None = None,
        probe: DiskUsageProbe | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.probe = probe or DuDiskUsageProbe()

    def validate(self, path: Path | str) -> None:
        """Validate a checkout path.

        Containment is checked on the fully resolved path, so `..` segments
        and symlinks pointing outside the scratch root are both rejected.
        Size is only measured once containment holds.

        Raises:
            PathSecurityError: If the path is missing, escapes the scratch root,
                or is larger than the configured ceiling.
        """
        candidate = Path(path)
        try:
            resolved = candidate.resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise PathSecurityError(f"Path does not exist: {candidate}") from e

        if not resolved.is_dir():
            raise PathSecurityError(f"Path is not a directory: {candidate}")

        root = self.settings.scratch_root.resolve()
        if resolved == root or not resolved.is_relative_to(root):
            logger.warning("Rejected checkout outside scratch root: %s", candidate)
            raise PathSecurityError(f"Path escapes scratch root {root}: {candidate}")

        limit = self.settings.max_repo_size_bytes
        size = self.probe.size_bytes(resolved)
        if size > limit:
            raise PathSecurityError(
                f"Checkout is {size // (1024 * 1024)} MB, limit is {self.settings.max_repo_size_mb} MB"
            )
        logger.debug("Validated %s (%d bytes)", resolved, size)
