"""Store configuration and file-name conventions.

The store location is injected into every component through ``YalcConfig``;
nothing reads a process-wide global. Tests build one config per temporary
directory.
"""

import os
import sys
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

STORE_DIR_ENV = "YALC_STORE_DIR"

PACKAGES_FOLDER = "packages"
INSTALLATIONS_FILE = "installations.json"

MANIFEST_FILE = "package.json"
LOCK_FILE = "yalc.lock"
SIGNATURE_FILE = "yalc.sig"
PUBLISH_LOG_FILE = "publishes.json"
CACHE_FOLDER = ".yalc"
NODE_MODULES_FOLDER = "node_modules"

SHORT_SIGNATURE_LENGTH = 8


def default_store_dir() -> Path:
    """Return the store directory used when none is configured.

    Resolution order:
    1. ``$YALC_STORE_DIR``
    2. ``%LOCALAPPDATA%/Yalc`` on Windows
    3. ``~/.yalc``
    """
    override = os.environ.get(STORE_DIR_ENV)
    if override:
        return Path(override).expanduser()

    if sys.platform == "win32" and os.environ.get("LOCALAPPDATA"):
        return Path(os.environ["LOCALAPPDATA"]) / "Yalc"

    return Path.home() / ".yalc"


class YalcConfig(BaseModel):
    """Location of the shared store (app policy, injected)."""

    model_config = ConfigDict(frozen=True)

    store_dir: Path

    @classmethod
    def default(cls) -> "YalcConfig":
        return cls(store_dir=default_store_dir())

    @property
    def packages_dir(self) -> Path:
        return self.store_dir / PACKAGES_FOLDER

    @property
    def installations_file(self) -> Path:
        return self.store_dir / INSTALLATIONS_FILE
