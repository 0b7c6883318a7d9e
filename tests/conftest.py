"""Shared fixtures: an isolated store plus producer and consumer packages."""

import json
from pathlib import Path

import pytest
from yalc import YalcConfig

DEP_PACKAGE_FILES = {
    ".yalc/yalc.txt": "nested yalc package",
    ".dot/dot.txt": "dot",
    ".gitignore": "dist\n",
    ".npmignore": "src/file-npm-ignored.txt\n",
    "LICENCE": "MIT",
    "src/file.txt": "src",
    "src/file-npm-ignored.txt": "ignored",
    "dist/file.txt": "dist",
    "root-file.txt": "root",
    "folder/file.txt": "folder file",
    "folder/file2.txt": "folder file 2",
    "folder2/file.txt": "folder2 file",
    "folder2/nested/file.txt": "nested file",
    "folder2/nested/file2.txt": "nested file 2",
    "test/file.txt": "test",
}

DEP_PACKAGE_FILES_LIST = [
    "dist",
    "src",
    ".dot",
    "root-file.txt",
    "folder/file.txt",
    "folder2/nested/file.txt",
]


def write_package(root: Path, manifest: dict, files: dict[str, str] | None = None) -> Path:
    """Create a package directory with package.json and the given files."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "package.json").write_text(json.dumps(manifest, indent=2) + "\n")
    for rel, content in (files or {}).items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def config(tmp_path):
    """Store rooted in the test's temporary directory."""
    return YalcConfig(store_dir=tmp_path / "yalc-store")


@pytest.fixture
def dep_package(tmp_path):
    """dep-package@1.0.0 with a files allow-list."""
    return write_package(
        tmp_path / "dep-package",
        {"name": "dep-package", "version": "1.0.0", "files": DEP_PACKAGE_FILES_LIST},
        DEP_PACKAGE_FILES,
    )


@pytest.fixture
def dep_package2(tmp_path):
    """dep-package2@1.0.0 without a files allow-list."""
    return write_package(
        tmp_path / "dep-package2",
        {"name": "dep-package2", "version": "1.0.0"},
        {"file.txt": "file", "LICENSE": "MIT", ".gitignore": "ignored-by-git.txt\n", "ignored-by-git.txt": "x"},
    )


@pytest.fixture
def project(tmp_path):
    """Consumer project depending on dep-package@1.0.0."""
    return write_package(
        tmp_path / "project",
        {"name": "project", "version": "1.0.0", "dependencies": {"dep-package": "1.0.0"}},
    )


@pytest.fixture
def make_package():
    """Factory for ad-hoc packages: make_package(root, manifest, files)."""
    return write_package
