"""Link operations - Add, update, retreat and remove store packages in a project.

Per package and consumer project the state moves through::

    Absent --add--> Installed (file | link) --remove(retreat)--> Retreated
    Retreated --update--> Installed
    Installed / Retreated --remove--> Absent

Every operation works on a batch of names. A failure for one name (e.g. the
package was never published) does not stop its siblings; failures are raised
together as BatchOperationError once the batch finishes.

Store location is injected through YalcConfig; the project directory is given
per call.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict

from .config import CACHE_FOLDER
from .config import NODE_MODULES_FOLDER
from .config import YalcConfig
from .exceptions import BatchOperationError
from .exceptions import YalcError
from .installations import InstallationsRegistry
from .lockfile import InstallMode
from .lockfile import YalcLock
from .manifest import PackageManifest
from .manifest import read_package_manifest
from .manifest import write_package_manifest
from .store import PackageStore
from .store import StoreEntry
from .utils import create_symlink
from .utils import package_path
from .utils import refresh_tree
from .utils import remove_path
from .utils import split_package_spec

logger = logging.getLogger(__name__)

Action = Literal["added", "updated", "retreated", "removed", "skipped"]


class OperationResult(BaseModel):
    """Outcome for one package of a batch operation."""

    model_config = ConfigDict(frozen=True)

    name: str
    action: Action
    mode: InstallMode | None = None
    signature: str | None = None


def cache_dir(project_dir: Path, name: str) -> Path:
    """``<project>/.yalc/<name>``."""
    return package_path(project_dir / CACHE_FOLDER, name)


def node_modules_dir(project_dir: Path, name: str) -> Path:
    """``<project>/node_modules/<name>``."""
    return package_path(project_dir / NODE_MODULES_FOLDER, name)


def dependency_spec(mode: InstallMode, name: str) -> str:
    """``file:.yalc/<name>`` or ``link:.yalc/<name>``."""
    return f"{mode}:{CACHE_FOLDER}/{name}"


def _remove_empty_dirs(path: Path, stop: Path) -> None:
    """Remove ``path`` and its empty parents, stopping below ``stop``."""
    while path != stop and path.is_dir() and not any(path.iterdir()):
        path.rmdir()
        path = path.parent


def _run_batch(names: list[str], handler: Callable[[str], OperationResult]) -> list[OperationResult]:
    results: list[OperationResult] = []
    failures: dict[str, Exception] = {}

    for name in names:
        try:
            results.append(handler(name))
        except (YalcError, OSError) as e:
            logger.error(f"{name}: {e}")
            failures[name] = e

    if failures:
        raise BatchOperationError(failures, results)
    return results


def _install(
    entry: StoreEntry,
    project_dir: Path,
    manifest: PackageManifest,
    lock: YalcLock,
    registry: InstallationsRegistry,
    mode: InstallMode,
    dev: bool = False,
) -> None:
    """Wire a store entry into the project (used by both add and update)."""
    name = entry.name
    cache = cache_dir(project_dir, name)
    target = node_modules_dir(project_dir, name)

    # Incremental refresh: nested node_modules inside the package survive
    refresh_tree(entry.path, cache)
    logger.debug(f"Copied {name} to {cache}")

    if mode == "link":
        create_symlink(cache.resolve(), target)
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
        refresh_tree(cache, target)
    logger.debug(f"Installed {name} into {target} ({mode})")

    existing = lock.get_entry(name)
    if existing is not None:
        replaced = existing.replaced
    else:
        current = manifest.get_dependency(name)
        replaced = current[1] if current is not None else ""

    manifest.set_dependency(name, dependency_spec(mode, name), dev=dev)
    write_package_manifest(project_dir, manifest)

    section, _ = manifest.get_dependency(name)
    lock.add_entry(
        name=name, mode=mode, replaced=replaced, signature=entry.signature, dev=section == "devDependencies"
    )

    registry.record(name, project_dir)


async def add_packages(
    names: list[str],
    project_dir: Path,
    config: YalcConfig,
    *,
    link: bool = False,
    dev: bool = False,
) -> list[OperationResult]:
    """
    Add published packages to a project.

    For each name (optionally ``name@version``):
    1. Resolve the store entry (latest publish unless a version is given)
    2. Copy it into ``.yalc/<name>``
    3. Copy into ``node_modules/<name>`` (file mode) or symlink it there (link mode)
    4. Record mode, replaced spec and signature in yalc.lock
    5. Point the manifest dependency at ``file:``/``link:.yalc/<name>``
    6. Record the project in the installations registry

    Args:
        names: Package names, optionally with ``@version``
        project_dir: Consumer project root (must contain package.json)
        config: Store configuration
        link: Use link mode instead of file mode
        dev: Declare new dependencies under devDependencies

    Returns:
        One OperationResult per added package

    Raises:
        ManifestMissingError / ManifestMalformedError: If the project's package.json is unusable
        BatchOperationError: If any package failed (others are still added)

    Example:
        >>> await add_packages(["dep-package"], project_dir=Path("my-app"), config=YalcConfig.default())
    """
    manifest = read_package_manifest(project_dir)
    store = PackageStore(config)
    lock = YalcLock.for_project(project_dir)
    registry = InstallationsRegistry(config.installations_file)
    mode: InstallMode = "link" if link else "file"

    def handle(spec: str) -> OperationResult:
        name, version = split_package_spec(spec)
        entry = store.get_entry(name, version)
        logger.info(f"Adding {name}@{entry.version} to {project_dir} ({mode})")
        _install(entry, project_dir, manifest, lock, registry, mode, dev=dev)
        return OperationResult(name=name, action="added", mode=mode, signature=entry.signature)

    return _run_batch(names, handle)


async def update_packages(
    names: list[str] | None,
    project_dir: Path,
    config: YalcConfig,
) -> list[OperationResult]:
    """
    Refresh linked packages from the store.

    Restores retreated packages as well. Names without a lock entry are
    skipped; update never adds a package.

    Args:
        names: Package names (all locked packages when None)
        project_dir: Consumer project root
        config: Store configuration

    Returns:
        One OperationResult per name ("updated" or "skipped")

    Raises:
        BatchOperationError: If any package failed (e.g. no longer in the store)
    """
    lock = YalcLock.for_project(project_dir)
    if names is None:
        names = lock.names()

    manifest = read_package_manifest(project_dir)
    store = PackageStore(config)
    registry = InstallationsRegistry(config.installations_file)

    def handle(spec: str) -> OperationResult:
        name, version = split_package_spec(spec)
        lock_entry = lock.get_entry(name)
        if lock_entry is None:
            logger.warning(f"{name} is not linked in {project_dir}, skipping update")
            return OperationResult(name=name, action="skipped")

        entry = store.get_entry(name, version)
        logger.info(f"Updating {name}@{entry.version} in {project_dir} ({lock_entry.mode})")
        _install(entry, project_dir, manifest, lock, registry, lock_entry.mode, dev=lock_entry.dev)
        return OperationResult(name=name, action="updated", mode=lock_entry.mode, signature=entry.signature)

    return _run_batch(names, handle)


async def remove_packages(
    names: list[str] | None,
    project_dir: Path,
    config: YalcConfig,
    *,
    retreat: bool = False,
) -> list[OperationResult]:
    """
    Remove (or retreat) linked packages from a project.

    Retreat only detaches: node_modules entry removed and the original
    dependency spec restored, while lock entry, ``.yalc`` copy and
    installations record stay so a later update re-activates the package.
    A full remove also drops all three.

    Names without a lock entry are skipped without touching any file.

    Args:
        names: Package names (all locked packages when None)
        project_dir: Consumer project root
        config: Store configuration
        retreat: Detach only

    Returns:
        One OperationResult per name ("retreated", "removed" or "skipped")

    Raises:
        BatchOperationError: If removing any package failed
    """
    lock = YalcLock.for_project(project_dir)
    if names is None:
        names = lock.names()

    manifest = read_package_manifest(project_dir)
    registry = InstallationsRegistry(config.installations_file)
    node_modules = project_dir / NODE_MODULES_FOLDER

    def handle(spec: str) -> OperationResult:
        name, _ = split_package_spec(spec)
        lock_entry = lock.get_entry(name)
        if lock_entry is None:
            logger.debug(f"{name} is not linked in {project_dir}, nothing to remove")
            return OperationResult(name=name, action="skipped")

        target = node_modules_dir(project_dir, name)
        remove_path(target)
        _remove_empty_dirs(target.parent, stop=node_modules)

        if lock_entry.replaced:
            manifest.set_dependency(name, lock_entry.replaced)
        else:
            manifest.remove_dependency(name)
        write_package_manifest(project_dir, manifest)

        if retreat:
            logger.info(f"Retreated {name} in {project_dir}")
            return OperationResult(name=name, action="retreated", mode=lock_entry.mode)

        lock.remove_entry(name)
        cache = cache_dir(project_dir, name)
        remove_path(cache)
        _remove_empty_dirs(cache.parent, stop=project_dir)
        registry.forget(name, project_dir)

        logger.info(f"Removed {name} from {project_dir}")
        return OperationResult(name=name, action="removed", mode=lock_entry.mode)

    return _run_batch(names, handle)
