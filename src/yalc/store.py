"""Package store - Versioned, content-signed copies of published packages.

Layout::

    <store_dir>/packages/<name>/<version>/
        package.json      published manifest (version may carry a signature tag)
        yalc.sig          raw 32-byte signature (signed publishes only)
        ...               resolved package files

Re-publishing a version replaces its directory wholesale. Entries are never
deleted automatically. Each package root also holds ``publishes.json``, a
``{version: sequence}`` map of publish order; "latest" is the highest
sequence.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from .config import MANIFEST_FILE
from .config import PUBLISH_LOG_FILE
from .config import SIGNATURE_FILE
from .config import YalcConfig
from .exceptions import PackageNotFoundInStoreError
from .exceptions import PublishError
from .files import resolve_package_files
from .manifest import PackageManifest
from .manifest import read_package_manifest
from .manifest import write_package_manifest
from .signature import compute_signature
from .signature import directory_signature
from .signature import signature_hex
from .signature import signed_version
from .utils import copy_files
from .utils import create_symlink
from .utils import package_path
from .utils import remove_path

logger = logging.getLogger(__name__)


class StoreEntry(BaseModel):
    """A published package version in the store (immutable)."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    path: Path
    signature: str

    @property
    def manifest(self) -> PackageManifest:
        return read_package_manifest(self.path)

    @property
    def published_version(self) -> str:
        """Version as written in the published manifest (may carry a tag)."""
        return self.manifest.version


class PackageStore:
    """
    Store of published packages (with injected store location).

    Example:
        >>> store = PackageStore(YalcConfig(store_dir=Path.home() / ".yalc"))
        >>> entry = await store.publish(Path("packages/dep-package"), signature=True)
        >>> entry.published_version
        '1.0.0-3f1c2b9a'
    """

    def __init__(self, config: YalcConfig):
        self.config = config

    def package_root(self, name: str) -> Path:
        return package_path(self.config.packages_dir, name)

    def version_dir(self, name: str, version: str) -> Path:
        return self.package_root(name) / version

    async def publish(self, package_dir: Path, *, signature: bool = False, knit: bool = False) -> StoreEntry:
        """
        Publish a package's resolved files to the store.

        Args:
            package_dir: Package root containing package.json
            signature: Write yalc.sig and tag the published version with the signature
            knit: Symlink files back to the source tree instead of copying
                  (ignored when signature is requested)

        Returns:
            StoreEntry for the published version

        Raises:
            ManifestMissingError / ManifestMalformedError: If package.json is unusable
            PublishError: If writing to the store fails
        """
        manifest = read_package_manifest(package_dir)
        target = self.version_dir(manifest.name, manifest.version)

        logger.info(f"Publishing {manifest.name}@{manifest.version} to {target}")
        try:
            file_set = resolve_package_files(package_dir, manifest)
            digest = compute_signature(file_set)

            remove_path(target)
            target.mkdir(parents=True)

            content = [rel for rel in file_set.files if rel != MANIFEST_FILE]
            if knit and not signature:
                source_root = package_dir.resolve()
                for rel in content:
                    create_symlink(source_root / rel, target / rel)
                logger.debug(f"Knitted {len(content)} files from {source_root}")
            else:
                copy_files(package_dir, target, content)
                logger.debug(f"Copied {len(content)} files")

            copy_files(package_dir, target, [MANIFEST_FILE])
            if signature:
                published = manifest.model_copy(update={"version": signed_version(manifest.version, digest)})
                write_package_manifest(target, published)
                (target / SIGNATURE_FILE).write_bytes(digest)

            self._record_publish(manifest.name, manifest.version)

        except (OSError, UnicodeDecodeError) as e:
            raise PublishError(
                f"Failed to publish {manifest.name}@{manifest.version}: {e}",
                context={"package": manifest.name, "path": str(target)},
            ) from e

        logger.info(f"Published {manifest.name}@{manifest.version} ({signature_hex(digest)[:8]})")
        return StoreEntry(
            name=manifest.name,
            version=manifest.version,
            path=target,
            signature=signature_hex(digest),
        )

    def _load_publish_log(self, name: str) -> dict[str, int]:
        log_path = self.package_root(name) / PUBLISH_LOG_FILE
        if not log_path.exists():
            return {}

        try:
            with open(log_path) as f:
                data = json.load(f)
            return {version: int(sequence) for version, sequence in data.items()}
        except (OSError, ValueError, AttributeError, TypeError) as e:
            logger.error(f"Failed to load publish log {log_path}: {e}")
            return {}

    def _record_publish(self, name: str, version: str) -> None:
        """Move a version to the end of the package's publish order."""
        log = self._load_publish_log(name)
        log[version] = max(log.values(), default=0) + 1

        with open(self.package_root(name) / PUBLISH_LOG_FILE, "w") as f:
            json.dump(log, f, indent=2)
            f.write("\n")

    def list_versions(self, name: str) -> list[str]:
        """Published versions of a package, oldest publish first.

        Order comes from the publish log; versions missing from it sort first,
        by directory mtime.
        """
        root = self.package_root(name)
        if not root.is_dir():
            return []
        log = self._load_publish_log(name)
        versions = [d for d in root.iterdir() if d.is_dir() and (d / MANIFEST_FILE).exists()]
        versions.sort(key=lambda d: (log.get(d.name, 0), d.stat().st_mtime, d.name))
        return [d.name for d in versions]

    def list_packages(self) -> list[str]:
        """Names of every package with at least one published version."""
        packages_dir = self.config.packages_dir
        if not packages_dir.is_dir():
            return []

        names = []
        for item in sorted(packages_dir.iterdir()):
            if not item.is_dir():
                continue
            if item.name.startswith("@"):
                names.extend(f"{item.name}/{sub.name}" for sub in sorted(item.iterdir()) if sub.is_dir())
            else:
                names.append(item.name)
        return [name for name in names if self.list_versions(name)]

    def find_entry(self, name: str, version: str | None = None) -> StoreEntry | None:
        """
        Find a published package.

        Args:
            name: Package name
            version: Exact version; latest publish when omitted

        Returns:
            StoreEntry or None if not published
        """
        if version is None:
            versions = self.list_versions(name)
            if not versions:
                return None
            version = versions[-1]

        path = self.version_dir(name, version)
        if not (path / MANIFEST_FILE).exists():
            return None

        marker = path / SIGNATURE_FILE
        if marker.exists():
            signature = marker.read_bytes().hex()
        else:
            signature = signature_hex(directory_signature(path, exclude=(SIGNATURE_FILE,)))

        return StoreEntry(name=name, version=version, path=path, signature=signature)

    def get_entry(self, name: str, version: str | None = None) -> StoreEntry:
        """Like find_entry, but raises PackageNotFoundInStoreError."""
        entry = self.find_entry(name, version)
        if entry is None:
            label = f"{name}@{version}" if version else name
            raise PackageNotFoundInStoreError(
                f"Package {label} not found in store {self.config.packages_dir}",
                context={"package": name, "version": version, "store": str(self.config.store_dir)},
            )
        return entry
