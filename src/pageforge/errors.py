"""Pageforge exception hierarchy.

All build failures inherit from PageforgeError so the CLI can turn them
into a single readable message. Only InvalidDefaultExportError is ever
collected instead of propagated.
"""

INVALID_DEFAULT_EXPORT = "INVALID_DEFAULT_EXPORT"


class PageforgeError(Exception):
    """Base exception for all Pageforge errors."""

    def __init__(self, message: str = "", *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class ConfigError(PageforgeError):
    """Invalid project layout or configuration."""


class CompileError(PageforgeError):
    """The bundler reported errors."""


class PageAnalysisError(PageforgeError):
    """A page bundle could not be analyzed. Always fatal."""


class InvalidDefaultExportError(PageAnalysisError):
    """A page bundle has no valid component as its default export."""

    def __init__(self, message: str = INVALID_DEFAULT_EXPORT) -> None:
        super().__init__(message)


class InvalidPagesError(PageforgeError):
    """One or more pages lack a valid default export."""

    def __init__(self, pages: list[str]) -> None:
        self.pages = sorted(pages)
        plural = "" if len(self.pages) == 1 else "s"
        listing = "\n".join(f"pages{page}" for page in self.pages)
        super().__init__(
            f"Build optimization failed: found page{plural} without a valid component "
            f"as default export in \n{listing}\n"
        )


class ExportError(PageforgeError):
    """Exported output on disk does not match what the build expected."""


def is_invalid_default_export(exc: BaseException) -> bool:
    if isinstance(exc, InvalidDefaultExportError):
        return True
    return str(exc) == INVALID_DEFAULT_EXPORT
