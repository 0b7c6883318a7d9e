"""Tests for signatures and the package store."""

import json
import os

import pytest
from yalc import PackageNotFoundInStoreError
from yalc import PublishError
from yalc import PackageStore
from yalc import compute_signature
from yalc import resolve_package_files
from yalc import short_signature
from yalc.exceptions import ManifestMissingError


def test_signature_is_32_bytes(dep_package):
    signature = compute_signature(resolve_package_files(dep_package))

    assert len(signature) == 32
    assert len(short_signature(signature)) == 8


def test_signature_changes_with_content(dep_package):
    before = compute_signature(resolve_package_files(dep_package))
    (dep_package / "dist" / "file.txt").write_text("changed")
    after = compute_signature(resolve_package_files(dep_package))

    assert before != after


def test_signature_ignores_unpublished_files(dep_package):
    """Files outside the resolved set never affect the signature."""
    before = compute_signature(resolve_package_files(dep_package))
    (dep_package / "test" / "file.txt").write_text("changed")
    after = compute_signature(resolve_package_files(dep_package))

    assert before == after


@pytest.mark.asyncio
async def test_publish_to_store(dep_package, config):
    """Test signed publish layout."""
    store = PackageStore(config)

    entry = await store.publish(dep_package, signature=True)

    published = config.store_dir / "packages" / "dep-package" / "1.0.0"
    assert entry.path == published
    assert (published / "package.json").exists()
    assert (published / ".yalc" / "yalc.txt").exists()
    assert (published / ".dot" / "dot.txt").exists()
    assert (published / "src").is_dir()
    assert (published / "dist" / "file.txt").exists()
    assert (published / "root-file.txt").exists()
    assert (published / "folder" / "file.txt").exists()
    assert (published / "folder2" / "nested" / "file.txt").exists()
    assert not (published / "folder" / "file2.txt").exists()
    assert not (published / "folder2" / "file.txt").exists()
    assert not (published / "folder2" / "nested" / "file2.txt").exists()
    assert not (published / "test").exists()
    assert not (published / "LICENCE").exists()
    assert not (published / ".gitignore").exists()
    assert not (published / "src" / "file-npm-ignored.txt").exists()


@pytest.mark.asyncio
async def test_signed_publish_writes_marker_and_version(dep_package, config):
    store = PackageStore(config)

    entry = await store.publish(dep_package, signature=True)

    marker = entry.path / "yalc.sig"
    assert marker.stat().st_size == 32
    assert marker.read_bytes().hex() == entry.signature

    version = entry.published_version
    assert len(version) == len("1.0.0") + 1 + 8
    assert version == f"1.0.0-{entry.signature[:8]}"


@pytest.mark.asyncio
async def test_signed_publish_keeps_other_manifest_fields(dep_package, config):
    store = PackageStore(config)

    entry = await store.publish(dep_package, signature=True)

    data = json.loads((entry.path / "package.json").read_text())
    assert list(data)[:3] == ["name", "version", "files"]
    assert data["name"] == "dep-package"


@pytest.mark.asyncio
async def test_signature_consistent_across_publishes(dep_package, config):
    """Re-publishing unchanged content yields byte-identical markers."""
    store = PackageStore(config)
    marker = config.store_dir / "packages" / "dep-package" / "1.0.0" / "yalc.sig"

    await store.publish(dep_package, signature=True)
    expected = marker.read_bytes()

    for _ in range(5):
        await store.publish(dep_package, signature=True)
        assert marker.read_bytes() == expected


@pytest.mark.asyncio
async def test_republish_replaces_contents(dep_package, config):
    """Files removed from the package disappear from the store on re-publish."""
    store = PackageStore(config)
    await store.publish(dep_package)

    (dep_package / "root-file.txt").unlink()
    entry = await store.publish(dep_package)

    assert not (entry.path / "root-file.txt").exists()


@pytest.mark.asyncio
async def test_unsigned_publish(dep_package2, config):
    """Without signing: plain version, no marker, signature derived from stored files."""
    store = PackageStore(config)

    entry = await store.publish(dep_package2)

    assert (entry.path / "file.txt").exists()
    assert (entry.path / "package.json").exists()
    assert not (entry.path / "yalc.sig").exists()
    assert not (entry.path / "ignored-by-git.txt").exists()
    assert entry.published_version == "1.0.0"

    found = store.find_entry("dep-package2")
    assert found is not None
    assert len(found.signature) == 64


@pytest.mark.asyncio
async def test_knit_publish_symlinks_to_source(dep_package2, config):
    store = PackageStore(config)

    entry = await store.publish(dep_package2, knit=True)

    published_file = entry.path / "file.txt"
    assert published_file.is_symlink()
    assert published_file.resolve() == (dep_package2 / "file.txt").resolve()
    assert not (entry.path / "package.json").is_symlink()


@pytest.mark.asyncio
async def test_signature_takes_precedence_over_knit(dep_package2, config):
    store = PackageStore(config)

    entry = await store.publish(dep_package2, knit=True, signature=True)

    assert not (entry.path / "file.txt").is_symlink()
    assert (entry.path / "yalc.sig").exists()


@pytest.mark.asyncio
async def test_publish_does_not_touch_source(dep_package, config):
    before = sorted(p.relative_to(dep_package) for p in dep_package.rglob("*"))

    await PackageStore(config).publish(dep_package, signature=True)

    assert sorted(p.relative_to(dep_package) for p in dep_package.rglob("*")) == before


@pytest.mark.asyncio
async def test_publish_without_manifest(tmp_path, config):
    with pytest.raises(ManifestMissingError):
        await PackageStore(config).publish(tmp_path)


@pytest.mark.asyncio
async def test_find_entry_latest_and_explicit_version(dep_package, config, make_package):
    store = PackageStore(config)
    await store.publish(dep_package, signature=True)

    make_package(
        dep_package,
        {"name": "dep-package", "version": "1.1.0", "files": ["dist"]},
    )
    await store.publish(dep_package, signature=True)

    assert store.list_versions("dep-package") == ["1.0.0", "1.1.0"]

    latest = store.find_entry("dep-package")
    assert latest is not None
    assert latest.version == "1.1.0"

    pinned = store.find_entry("dep-package", "1.0.0")
    assert pinned is not None
    assert pinned.version == "1.0.0"

    assert store.list_packages() == ["dep-package"]


@pytest.mark.asyncio
async def test_scoped_package_layout(tmp_path, config, make_package):
    package = make_package(tmp_path / "scoped", {"name": "@acme/tool", "version": "2.0.0"}, {"index.js": ""})
    store = PackageStore(config)

    entry = await store.publish(package)

    assert entry.path == config.store_dir / "packages" / "@acme" / "tool" / "2.0.0"
    assert store.list_packages() == ["@acme/tool"]


def test_get_entry_missing(config):
    store = PackageStore(config)

    assert store.find_entry("nope") is None
    with pytest.raises(PackageNotFoundInStoreError, match="not found in store"):
        store.get_entry("nope")


@pytest.mark.asyncio
async def test_latest_follows_publish_order_not_mtime(dep_package, config, make_package):
    """Latest is the last version published even when directory mtimes tie."""
    store = PackageStore(config)
    make_package(dep_package, {"name": "dep-package", "version": "2.0.0", "files": ["dist"]})
    first = await store.publish(dep_package)
    make_package(dep_package, {"name": "dep-package", "version": "1.0.0", "files": ["dist"]})
    second = await store.publish(dep_package)

    os.utime(first.path, (1_000_000, 1_000_000))
    os.utime(second.path, (1_000_000, 1_000_000))

    assert store.list_versions("dep-package") == ["2.0.0", "1.0.0"]
    assert store.find_entry("dep-package").version == "1.0.0"

    await store.publish(make_package(dep_package, {"name": "dep-package", "version": "2.0.0"}))
    assert store.find_entry("dep-package").version == "2.0.0"


@pytest.mark.asyncio
async def test_undecodable_ignore_file_raises_publish_error(tmp_path, config, make_package):
    package = make_package(tmp_path / "pkg", {"name": "pkg", "version": "1.0.0"}, {"index.js": ""})
    (package / ".npmignore").write_bytes(b"\xff\xfe\x00bad")

    with pytest.raises(PublishError):
        await PackageStore(config).publish(package)
