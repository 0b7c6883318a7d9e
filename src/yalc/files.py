"""Publishable file resolution - Which files a registry publish would include.

Rules (highest priority first):
1. A manifest ``files`` allow-list selects candidates. Directory entries
   include their subtree; anything not matched is left out.
2. Without ``files``, everything under the root is a candidate.
3. Candidates are filtered by default ignores and by ``.npmignore`` (or
   ``.gitignore`` when no ``.npmignore`` exists) found in each directory,
   applying to that directory's subtree only.
4. ``package.json``, README/CHANGELOG, the ``main`` file, paths named
   exactly in ``files`` and the ``.yalc`` folder bypass ignore filtering.
"""

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from .config import CACHE_FOLDER
from .config import MANIFEST_FILE
from .manifest import PackageManifest
from .manifest import read_package_manifest

logger = logging.getLogger(__name__)

PACKAGE_IGNORE_FILE = ".npmignore"
VCS_IGNORE_FILE = ".gitignore"

DEFAULT_IGNORES = (
    ".git",
    ".svn",
    ".hg",
    "CVS",
    "node_modules",
    ".npmrc",
    ".npmignore",
    ".gitignore",
    ".lock-wscript",
    ".wafpickle-*",
    "npm-debug.log",
    ".DS_Store",
    "._*",
    ".*.swp",
    "*.orig",
    "config.gypi",
    "package-lock.json",
    "yarn.lock",
    "yalc.lock",
    "yalc.sig",
    "LICENSE*",
    "LICENCE*",
)

# Root-level basenames (lowercased) that are always published
ALWAYS_INCLUDED = (MANIFEST_FILE, "readme*", "changelog*", "changes*", "history*")

FORCE_INCLUDED_DIRS = (CACHE_FOLDER,)

_GLOB_CHARS = frozenset("*?[")


def _match_segments(pattern: tuple[str, ...], parts: tuple[str, ...]) -> bool:
    """Match path segments against glob segments; ``**`` spans any depth."""
    if not pattern:
        return not parts
    head = pattern[0]
    if head == "**":
        return any(_match_segments(pattern[1:], parts[i:]) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match_segments(pattern[1:], parts[1:])


def _split(pattern: str) -> tuple[str, ...]:
    return tuple(segment for segment in pattern.split("/") if segment and segment != ".")


@dataclass(frozen=True)
class IgnoreRule:
    """One line of an ignore file."""

    segments: tuple[str, ...]
    anchored: bool
    dir_only: bool
    negated: bool

    @classmethod
    def parse(cls, line: str) -> "IgnoreRule | None":
        """Parse an ignore-file line; returns None for blanks and comments."""
        line = line.rstrip()
        if not line or line.startswith("#"):
            return None

        negated = line.startswith("!")
        if negated:
            line = line[1:]
        elif line.startswith("\\"):
            line = line[1:]

        dir_only = line.endswith("/")
        line = line.rstrip("/")
        anchored = "/" in line
        segments = _split(line)
        if not segments:
            return None

        return cls(segments=segments, anchored=anchored, dir_only=dir_only, negated=negated)

    def matches(self, parts: tuple[str, ...], is_dir: bool) -> bool:
        """Check a path given relative to the ignore file's directory."""
        if self.dir_only and not is_dir:
            return False
        if not self.anchored:
            return fnmatch.fnmatchcase(parts[-1], self.segments[0])
        return _match_segments(self.segments, parts)


def parse_ignore_lines(lines: list[str]) -> list[IgnoreRule]:
    rules = []
    for line in lines:
        rule = IgnoreRule.parse(line)
        if rule is not None:
            rules.append(rule)
    return rules


_DEFAULT_RULES = parse_ignore_lines(list(DEFAULT_IGNORES))


def read_ignore_rules(directory: Path) -> list[IgnoreRule]:
    """Load ``.npmignore`` from a directory, falling back to ``.gitignore``.

    The package-specific file fully replaces the VCS one; they never merge.
    """
    for name in (PACKAGE_IGNORE_FILE, VCS_IGNORE_FILE):
        ignore_file = directory / name
        if ignore_file.is_file():
            logger.debug(f"Using ignore rules from {ignore_file}")
            return parse_ignore_lines(ignore_file.read_text(encoding="utf-8").splitlines())
    return []


@dataclass(frozen=True)
class _RuleScope:
    base: tuple[str, ...]
    rules: list[IgnoreRule]


def _is_ignored(scopes: list[_RuleScope], parts: tuple[str, ...], is_dir: bool) -> bool:
    ignored = False
    for scope in scopes:
        relative = parts[len(scope.base) :]
        for rule in scope.rules:
            if rule.matches(relative, is_dir):
                ignored = not rule.negated
    return ignored


class ResolvedFileSet(BaseModel):
    """Files (relative POSIX paths, sorted) selected for publishing."""

    model_config = ConfigDict(frozen=True)

    root: Path
    files: tuple[str, ...]

    @property
    def directories(self) -> list[str]:
        """Every directory that holds at least one selected file."""
        dirs = set()
        for rel in self.files:
            parts = rel.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                dirs.add("/".join(parts[:i]))
        return sorted(dirs)

    def __contains__(self, rel: str) -> bool:
        return rel in self.files or rel in self.directories

    def __len__(self) -> int:
        return len(self.files)


class _FilesAllowList:
    """Matcher for the manifest ``files`` entries."""

    def __init__(self, entries: list[str]):
        self.patterns = [p for p in (_split(e.strip().lstrip("/")) for e in entries) if p]
        self.literals = {"/".join(p) for p in self.patterns if not any(c in _GLOB_CHARS for c in "".join(p))}

    def names(self, rel: str) -> bool:
        """Entry names this exact path (no globbing)."""
        return rel in self.literals

    def names_beneath(self, rel: str) -> bool:
        """Some entry names a path inside this directory exactly."""
        prefix = rel + "/"
        return any(literal.startswith(prefix) for literal in self.literals)

    def selects(self, parts: tuple[str, ...]) -> bool:
        """Path or one of its ancestors is matched by an entry."""
        return any(
            _match_segments(pattern, parts[:depth])
            for pattern in self.patterns
            for depth in range(1, len(parts) + 1)
        )

    def may_contain(self, parts: tuple[str, ...]) -> bool:
        """Some entry could match a path beneath this directory."""
        for pattern in self.patterns:
            for i, segment in enumerate(pattern):
                if segment == "**":
                    if _match_segments(pattern[:i], parts[:i]):
                        return True
                    break
                if i >= len(parts):
                    return True
                if not fnmatch.fnmatchcase(parts[i], segment):
                    break
        return False


def _always_included(name: str) -> bool:
    lowered = name.lower()
    return any(fnmatch.fnmatchcase(lowered, pattern) for pattern in ALWAYS_INCLUDED)


def resolve_package_files(package_dir: Path, manifest: PackageManifest | None = None) -> ResolvedFileSet:
    """
    Resolve the files a publish of ``package_dir`` includes.

    Args:
        package_dir: Package root (where package.json is)
        manifest: Parsed manifest (read from package_dir when omitted)

    Returns:
        ResolvedFileSet with sorted relative file paths

    Example:
        >>> file_set = resolve_package_files(Path("packages/dep-package"))
        >>> "package.json" in file_set
        True
    """
    if manifest is None:
        manifest = read_package_manifest(package_dir)

    allow_list = _FilesAllowList(manifest.files) if manifest.files is not None else None
    main_file = "/".join(_split(manifest.main)) if manifest.main else None
    default_scope = _RuleScope(base=(), rules=_DEFAULT_RULES)

    files: list[str] = []

    def walk(
        directory: Path,
        dir_parts: tuple[str, ...],
        scopes: list[_RuleScope],
        selected: bool,
        pruned: bool = False,
    ) -> None:
        # pruned: directory itself is ignored, only exactly named paths survive
        local_rules = read_ignore_rules(directory)
        if local_rules:
            scopes = [*scopes, _RuleScope(base=dir_parts, rules=local_rules)]

        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            parts = (*dir_parts, entry.name)
            rel = "/".join(parts)
            is_dir = entry.is_dir()

            at_root = not dir_parts
            forced = at_root and (
                (is_dir and entry.name in FORCE_INCLUDED_DIRS) or (not is_dir and _always_included(entry.name))
            )
            named = rel == main_file or (allow_list is not None and allow_list.names(rel))

            if not (forced or named) and (pruned or _is_ignored([default_scope, *scopes], parts, is_dir)):
                if is_dir and allow_list is not None and allow_list.names_beneath(rel):
                    walk(entry, parts, scopes, selected=False, pruned=True)
                continue

            if allow_list is not None and not (selected or forced or named):
                if not allow_list.selects(parts):
                    if is_dir and allow_list.may_contain(parts):
                        walk(entry, parts, scopes, selected=False)
                    continue

            if is_dir:
                walk(entry, parts, scopes, selected=True)
            elif entry.exists():
                files.append(rel)

    walk(package_dir, (), [], selected=allow_list is None)

    logger.debug(f"Resolved {len(files)} files for {manifest.name}")
    return ResolvedFileSet(root=package_dir, files=tuple(sorted(files)))
