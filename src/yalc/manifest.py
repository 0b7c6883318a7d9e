"""Package manifest schema - Parse and write package.json files.

The manifest is modelled with explicit optional fields and validated on load,
so callers never chase missing keys. Unknown keys are kept as extra fields
and written back untouched.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from .config import MANIFEST_FILE
from .exceptions import ManifestMalformedError
from .exceptions import ManifestMissingError

logger = logging.getLogger(__name__)

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies")


class PackageManifest(BaseModel):
    """package.json contents relevant to linking."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    version: str
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict, alias="devDependencies")
    files: list[str] | None = None
    main: str | None = None

    @classmethod
    def from_file(cls, manifest_path: Path) -> "PackageManifest":
        """
        Load manifest from a package.json file.

        Args:
            manifest_path: Path to package.json

        Returns:
            PackageManifest instance

        Raises:
            ManifestMissingError: If the file doesn't exist
            ManifestMalformedError: If the file isn't a JSON object with name and version
        """
        if not manifest_path.exists():
            raise ManifestMissingError(
                f"package.json not found: {manifest_path}",
                context={"path": str(manifest_path)},
            )

        try:
            data = json.loads(manifest_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ManifestMalformedError(
                f"Invalid JSON in {manifest_path}: {e}",
                context={"path": str(manifest_path)},
            ) from e

        if not isinstance(data, dict):
            raise ManifestMalformedError(
                f"Expected a JSON object in {manifest_path}",
                context={"path": str(manifest_path)},
            )

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ManifestMalformedError(
                f"Invalid package.json {manifest_path}: {e}",
                context={"path": str(manifest_path)},
            ) from e

    def to_dict(self) -> dict:
        """Convert to package.json shaped dictionary."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def get_dependency(self, name: str) -> tuple[str, str] | None:
        """Return (section, spec) for a dependency, or None if not declared."""
        if name in self.dependencies:
            return "dependencies", self.dependencies[name]
        if name in self.dev_dependencies:
            return "devDependencies", self.dev_dependencies[name]
        return None

    def set_dependency(self, name: str, spec: str, dev: bool = False) -> None:
        """Set a dependency spec, keeping it in the section it already lives in."""
        current = self.get_dependency(name)
        if current is not None:
            section = current[0]
        else:
            section = "devDependencies" if dev else "dependencies"

        if section == "devDependencies":
            self.dev_dependencies[name] = spec
        else:
            self.dependencies[name] = spec

    def remove_dependency(self, name: str) -> None:
        self.dependencies.pop(name, None)
        self.dev_dependencies.pop(name, None)


def read_package_manifest(package_dir: Path) -> PackageManifest:
    """Read and validate ``package_dir/package.json``."""
    return PackageManifest.from_file(package_dir / MANIFEST_FILE)


def _detect_indent(text: str) -> int | str:
    for line in text.splitlines()[1:]:
        stripped = line.lstrip()
        if stripped:
            indent = line[: len(line) - len(stripped)]
            if indent.startswith("\t"):
                return "\t"
            return len(indent) or 2
    return 2


def write_package_manifest(package_dir: Path, manifest: PackageManifest) -> None:
    """
    Write manifest to ``package_dir/package.json``.

    The existing JSON object is updated in place so key order and indentation
    survive; dependency sections that were absent and are still empty are not
    added.

    Args:
        package_dir: Directory containing package.json
        manifest: Manifest to write
    """
    manifest_path = package_dir / MANIFEST_FILE

    original: dict = {}
    indent: int | str = 2
    if manifest_path.exists():
        text = manifest_path.read_text(encoding="utf-8")
        indent = _detect_indent(text)
        try:
            original = json.loads(text)
        except json.JSONDecodeError:
            logger.warning(f"Overwriting malformed manifest: {manifest_path}")
            original = {}

    data = manifest.to_dict()
    for section in DEPENDENCY_SECTIONS:
        if not data.get(section) and section not in original:
            data.pop(section, None)

    original.update(data)
    manifest_path.write_text(json.dumps(original, indent=indent) + "\n", encoding="utf-8")
    logger.debug(f"Wrote manifest {manifest_path}")
