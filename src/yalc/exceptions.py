"""Yalc-specific exceptions.

Every error carries a human-readable message plus a context dict
(package name, paths) so callers can report without re-parsing strings.
"""


class YalcError(Exception):
    """Base exception for yalc operations."""

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (package name, paths, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class PackageNotFoundInStoreError(YalcError):
    """Package (or requested version) has not been published to the store."""


class ManifestError(YalcError):
    """Base for package.json problems."""


class ManifestMissingError(ManifestError):
    """package.json does not exist."""


class ManifestMalformedError(ManifestError):
    """package.json is not valid JSON or lacks required fields."""


class PublishError(YalcError):
    """Publishing a package to the store failed."""


class BatchOperationError(YalcError):
    """One or more packages in a batch failed; the rest were processed.

    Attributes:
        failures: Mapping of package name to the exception raised for it
        results: Results for the packages that completed
    """

    def __init__(self, failures: dict[str, Exception], results: list | None = None):
        names = ", ".join(failures)
        super().__init__(
            f"Failed to process {len(failures)} package(s): {names}",
            context={"packages": list(failures)},
        )
        self.failures = failures
        self.results = results or []
