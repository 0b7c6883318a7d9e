"""Filesystem and package-name helpers shared by store and link operations."""

import logging
import os
import shutil
from collections.abc import Callable
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def split_package_spec(spec: str) -> tuple[str, str | None]:
    """Split ``name@version`` into (name, version).

    Scoped names keep their leading ``@``.

    Examples:
        >>> split_package_spec("dep-package")
        ('dep-package', None)
        >>> split_package_spec("@scope/pkg@1.2.0")
        ('@scope/pkg', '1.2.0')
    """
    at = spec.rfind("@")
    if at <= 0:
        return spec, None
    name, version = spec[:at], spec[at + 1 :]
    return name, version or None


def package_path(base: Path, name: str) -> Path:
    """Location of a package inside ``base`` (``@scope/name`` nests one level)."""
    return base.joinpath(*name.split("/"))


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree; missing paths are ignored."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def create_symlink(target: Path, link_path: Path) -> None:
    """Create (or replace) ``link_path`` pointing at ``target``."""
    link_path.parent.mkdir(parents=True, exist_ok=True)
    remove_path(link_path)
    os.symlink(target, link_path, target_is_directory=target.is_dir())


def copy_files(src_root: Path, dst_root: Path, relative_paths: Iterable[str]) -> None:
    """Copy the listed files from ``src_root`` into ``dst_root``."""
    for rel in relative_paths:
        target = dst_root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_root / rel, target)


def copy_tree(src: Path, dst: Path, predicate: Callable[[Path], bool] | None = None) -> None:
    """Recursively copy ``src`` into ``dst``, merging with existing content.

    Args:
        src: Source directory
        dst: Destination directory (created if needed)
        predicate: Optional filter; entries for which it returns False are skipped
    """

    def _ignore(directory: str, names: list[str]) -> set[str]:
        if predicate is None:
            return set()
        return {name for name in names if not predicate(Path(directory) / name)}

    shutil.copytree(src, dst, ignore=_ignore, dirs_exist_ok=True)


def refresh_tree(src: Path, dst: Path, keep: tuple[str, ...] = ("node_modules",)) -> None:
    """Make ``dst`` mirror ``src`` while leaving top-level ``keep`` entries alone.

    Used on update so dependencies installed inside a linked package survive.
    """
    if dst.is_symlink() or dst.is_file():
        dst.unlink()

    if dst.is_dir():
        for child in dst.iterdir():
            if child.name in keep:
                continue
            remove_path(child)

    copy_tree(src, dst, predicate=lambda p: not (p.parent == src and p.name in keep))
    logger.debug(f"Refreshed {dst} from {src}")


def collect_tree_files(root: Path, exclude: tuple[str, ...] = ()) -> list[str]:
    """List relative POSIX paths of all files under ``root`` (sorted).

    Top-level names in ``exclude`` are skipped.
    """
    files = []
    for path in root.rglob("*"):
        rel = path.relative_to(root)
        if rel.parts[0] in exclude:
            continue
        if path.is_file():
            files.append(rel.as_posix())
    return sorted(files)
