"""Project lock file management.

Tracks, per consumer project, which packages are linked from the store, how
they are wired (copied files or symlink) and which dependency spec they
replaced so it can be restored.

The lock path is injected by the caller; nothing here decides where projects
live.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from .config import LOCK_FILE

logger = logging.getLogger(__name__)

InstallMode = Literal["file", "link"]


@dataclass
class LockEntry:
    """Entry in yalc.lock."""

    name: str
    mode: InstallMode
    replaced: str
    signature: str
    dev: bool = False

    def to_dict(self) -> dict:
        """Convert to on-disk dictionary (name is the mapping key)."""
        data = {self.mode: True, "replaced": self.replaced, "signature": self.signature}
        if self.dev:
            data["dev"] = True
        return data

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "LockEntry":
        """Create from on-disk dictionary."""
        mode: InstallMode = "link" if data.get("link") else "file"
        return cls(
            name=name,
            mode=mode,
            replaced=data.get("replaced", ""),
            signature=data.get("signature", ""),
            dev=bool(data.get("dev", False)),
        )


class YalcLock:
    """
    Project lock file manager (with injected lock path).

    Lock format (JSON):
    {
      "version": 1,
      "packages": {
        "dep-package": {
          "file": true,
          "replaced": "1.0.0",
          "signature": "3f1c2b9a..."
        }
      }
    }
    """

    VERSION = 1

    def __init__(self, lock_path: Path):
        """Initialize lock manager with caller-provided lock path.

        Args:
            lock_path: Path to lock file

        Example:
            >>> lock = YalcLock.for_project(Path("my-app"))
        """
        self.lock_path = lock_path
        self._data: dict[str, LockEntry] = {}
        self._load()

    @classmethod
    def for_project(cls, project_dir: Path) -> "YalcLock":
        return cls(lock_path=project_dir / LOCK_FILE)

    def _load(self) -> None:
        """Load lock file if it exists."""
        if not self.lock_path.exists():
            self._data = {}
            return

        try:
            with open(self.lock_path) as f:
                data = json.load(f)

            if data.get("version") != self.VERSION:
                logger.warning(f"Lock file version mismatch: expected {self.VERSION}, got {data.get('version')}")

            packages = data.get("packages", {})
            self._data = {name: LockEntry.from_dict(name, entry) for name, entry in packages.items()}

            logger.debug(f"Loaded {len(self._data)} packages from lock file")

        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Failed to load lock file {self.lock_path}: {e}")
            self._data = {}

    def _save(self) -> None:
        """Rewrite the whole lock file."""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": self.VERSION,
            "packages": {name: entry.to_dict() for name, entry in sorted(self._data.items())},
        }

        with open(self.lock_path, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        logger.debug(f"Saved lock file with {len(self._data)} packages")

    def add_entry(
        self, name: str, mode: InstallMode, replaced: str, signature: str, dev: bool = False
    ) -> LockEntry:
        """
        Add or update package in lock file.

        Args:
            name: Package name
            mode: "file" (copied) or "link" (symlinked)
            replaced: Dependency spec the link replaced ("" if none)
            signature: Store signature at install time
            dev: Dependency lives in devDependencies

        Returns:
            The stored entry
        """
        entry = LockEntry(name=name, mode=mode, replaced=replaced, signature=signature, dev=dev)
        self._data[name] = entry
        self._save()

        logger.debug(f"Added {name} to lock file")
        return entry

    def remove_entry(self, name: str) -> None:
        """
        Remove package from lock file (no-op when absent).

        Args:
            name: Package name
        """
        if name in self._data:
            del self._data[name]
            self._save()
            logger.debug(f"Removed {name} from lock file")

    def get_entry(self, name: str) -> LockEntry | None:
        """
        Get lock entry for package.

        Args:
            name: Package name

        Returns:
            Lock entry or None if not found
        """
        return self._data.get(name)

    def list_entries(self) -> list[LockEntry]:
        """
        List all locked packages.

        Returns:
            List of lock entries
        """
        return list(self._data.values())

    def names(self) -> list[str]:
        return list(self._data)

    def is_installed(self, name: str) -> bool:
        """
        Check if package is in lock file.

        Args:
            name: Package name

        Returns:
            True if package is tracked
        """
        return name in self._data
