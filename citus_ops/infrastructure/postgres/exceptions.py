from __future__ import annotations


class CitusOpsError(Exception):
    """Base class for errors raised by citus-ops."""


class CatalogError(CitusOpsError):
    """A Citus catalog command failed on a node."""

    def __init__(self, operation: str, target: str, cause: BaseException) -> None:
        self.operation = operation
        self.target = target
        self.cause = cause
        super().__init__(f"{operation} failed on {target}: {type(cause).__name__}: {cause}")


class BootstrapError(CitusOpsError):
    """Database bootstrap could not finish."""
