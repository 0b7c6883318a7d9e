"""yalc - Local package store and linking for package development.

Publish a package into a shared local store, then add it to consumer
projects as if it came from a registry. Store location is injected through
YalcConfig; consumer projects are passed per call.
"""

from .config import YalcConfig
from .exceptions import BatchOperationError
from .exceptions import ManifestError
from .exceptions import ManifestMalformedError
from .exceptions import ManifestMissingError
from .exceptions import PackageNotFoundInStoreError
from .exceptions import PublishError
from .exceptions import YalcError
from .files import ResolvedFileSet
from .files import resolve_package_files
from .installations import InstallationsRegistry
from .lockfile import LockEntry
from .lockfile import YalcLock
from .manifest import PackageManifest
from .manifest import read_package_manifest
from .manifest import write_package_manifest
from .operations import OperationResult
from .operations import add_packages
from .operations import remove_packages
from .operations import update_packages
from .signature import compute_signature
from .signature import short_signature
from .store import PackageStore
from .store import StoreEntry

__all__ = [
    # Configuration
    "YalcConfig",
    # Manifest
    "PackageManifest",
    "read_package_manifest",
    "write_package_manifest",
    # Publishing
    "ResolvedFileSet",
    "resolve_package_files",
    "compute_signature",
    "short_signature",
    "PackageStore",
    "StoreEntry",
    # State
    "YalcLock",
    "LockEntry",
    "InstallationsRegistry",
    # Link operations
    "add_packages",
    "update_packages",
    "remove_packages",
    "OperationResult",
    # Exceptions
    "YalcError",
    "BatchOperationError",
    "ManifestError",
    "ManifestMalformedError",
    "ManifestMissingError",
    "PackageNotFoundInStoreError",
    "PublishError",
]

__version__ = "0.1.0"
