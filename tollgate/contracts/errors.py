"""Errors raised while loading contract data."""

from __future__ import annotations


class ResolutionError(ValueError):
    """Raised when contract or mapping data is malformed.

    The registry fails closed: loading stops with every collected issue rather
    than serving a partial mapping.

    Attributes
    ----------
    issues
        Human-readable problems, one per entry.

    """

    def __init__(self, issues: list[str]) -> None:
        """Capture the issues and join them into the exception message."""
        super().__init__("\n".join(issues))
        self.issues = issues

    @classmethod
    def for_source(cls, source: str, issues: list[str]) -> ResolutionError:
        """Prefix each issue with the file it came from."""
        return cls([f"{source}: {issue}" for issue in issues])


class RegistryNotLoadedError(RuntimeError):
    """Raised when the registry is queried before its first successful load."""

    def __init__(self) -> None:
        """Attach a fixed message."""
        super().__init__("contract registry has not been loaded")
