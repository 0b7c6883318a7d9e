"""Global installations registry.

Records which consumer projects have each package linked, so an update can
be fanned out to every consumer. Format (JSON)::

    {
      "dep-package": ["/home/me/app", "/home/me/other-app"]
    }
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class InstallationsRegistry:
    """Package name -> consumer project paths (with injected registry path)."""

    def __init__(self, registry_path: Path):
        self.registry_path = registry_path
        self._data: dict[str, set[str]] = {}
        self._load()

    def _load(self) -> None:
        if not self.registry_path.exists():
            self._data = {}
            return

        try:
            with open(self.registry_path) as f:
                data = json.load(f)
            self._data = {name: set(paths) for name, paths in data.items()}
            logger.debug(f"Loaded installations for {len(self._data)} packages")
        except (OSError, ValueError, AttributeError, TypeError) as e:
            logger.error(f"Failed to load installations file {self.registry_path}: {e}")
            self._data = {}

    def _save(self) -> None:
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.registry_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
            f.write("\n")

    def to_dict(self) -> dict[str, list[str]]:
        return {name: sorted(paths) for name, paths in sorted(self._data.items())}

    def record(self, name: str, project_dir: Path) -> None:
        """Add a consumer project for a package (idempotent)."""
        project = str(project_dir.resolve())
        consumers = self._data.setdefault(name, set())
        if project in consumers:
            return
        consumers.add(project)
        self._save()
        logger.debug(f"Recorded installation of {name} in {project}")

    def forget(self, name: str, project_dir: Path) -> None:
        """Remove a consumer project; drops the package key once empty."""
        project = str(project_dir.resolve())
        consumers = self._data.get(name)
        if not consumers or project not in consumers:
            return
        consumers.discard(project)
        if not consumers:
            del self._data[name]
        self._save()
        logger.debug(f"Forgot installation of {name} in {project}")

    def consumers_of(self, name: str) -> set[str]:
        """Projects that currently have the package linked."""
        return set(self._data.get(name, ()))
