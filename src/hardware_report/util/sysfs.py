"""Read-only access to kernel pseudo-files such as /sys and /proc."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from ..errors import PermissionDeniedError, SystemIOError

LOGGER = logging.getLogger(__name__)


class SysfsReader:
    """Reads pseudo-files below ``root`` (``/`` on a live system)."""

    def __init__(self, root: Path | str = "/") -> None:
        self.root = Path(root)

    def resolve(self, path: str) -> Path:
        return self.root / str(path).lstrip("/")

    def read(self, path: str) -> str:
        try:
            return self.resolve(path).read_text(encoding="utf-8", errors="replace")
        except PermissionError as exc:
            raise PermissionDeniedError(f"Permission denied reading {path}") from exc
        except OSError as exc:
            raise SystemIOError(f"Unable to read {path}: {exc}") from exc

    def read_optional(self, path: str) -> Optional[str]:
        """Stripped file contents, or ``None`` when the file cannot be read."""
        try:
            return self.read(path).strip()
        except (PermissionDeniedError, SystemIOError) as exc:
            LOGGER.debug("Unable to read %s: %s", path, exc)
            return None

    def read_link(self, path: str) -> Optional[str]:
        try:
            return os.readlink(self.resolve(path))
        except OSError:
            return None

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()

    def list_dir(self, path: str) -> List[str]:
        try:
            return sorted(entry.name for entry in self.resolve(path).iterdir())
        except OSError as exc:
            LOGGER.debug("Unable to list %s: %s", path, exc)
            return []
