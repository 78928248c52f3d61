"""Exception hierarchy for infrascout."""

from pathlib import Path


class InfrascoutError(Exception):
    """Base exception for all infrascout errors."""


class PathSecurityError(InfrascoutError):
    """Checkout path escapes the scratch root or exceeds the size ceiling."""


class ParseError(InfrascoutError):
    """Malformed manifest, compose, Dockerfile, CI or env-example content."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Failed to parse {self.path.name}: {reason}")


class RepositoryAnalysisError(InfrascoutError):
    """Failed to analyze a repository checkout."""

    def __init__(self, repository: str, message: str) -> None:
        self.repository = repository
        super().__init__(f"Analysis of {repository} failed: {message}")


class ProvisioningError(InfrascoutError):
    """Failed to provision infrastructure. Nothing was persisted."""

    def __init__(self, repository: str, message: str) -> None:
        self.repository = repository
        super().__init__(f"Failed to provision infrastructure for {repository}: {message}")
