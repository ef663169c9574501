"""Error taxonomy for a roundup run.

Per-record problems (malformed scanner records, unresolvable package paths) are
raised close to where they happen and turned into diagnostics by the caller.
Everything else aborts the run: a partially correct ticket set is worse than none.
"""


class RoundupError(Exception):
    """Base class for roundup errors; category names the failure for the run summary."""

    category = "roundup_error"
    fatal = True

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MalformedInput(RoundupError):
    """Raised when a single scanner record cannot be normalized."""

    category = "malformed_input"
    fatal = False


class UnresolvedPackagePath(RoundupError):
    """Raised when the package metadata provider cannot resolve an attribute path."""

    category = "unresolved_package_path"
    fatal = False

    def __init__(self, message: str, attr: str, channel: str) -> None:
        self.attr = attr
        self.channel = channel
        super().__init__(message)


class HistoryCorrupt(RoundupError):
    """Raised when a persisted ticket cannot be parsed back into its identity."""

    category = "history_corrupt"


class IdentityCollision(RoundupError):
    """Raised when two distinct packages map to the same ticket identity."""

    category = "identity_collision"


class WhitelistInvalid(RoundupError):
    """Raised when a whitelist file cannot be read or has an invalid structure."""

    category = "whitelist_invalid"


class ScanArtifactMissing(RoundupError):
    """Raised when the scanner output for a channel is not present in the iteration dir."""

    category = "scan_artifact_missing"


class ScanArtifactInvalid(RoundupError):
    """Raised when scanner output for a channel is not valid JSON."""

    category = "scan_artifact_invalid"


class GitHubApiError(RoundupError):
    """Raised when the GitHub API returns an error (auth, repo not found, validation)."""

    category = "github_api"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class GitHubNotConfiguredError(RoundupError):
    """Raised when GitHub export is invoked but required settings are missing."""

    category = "github_not_configured"


class IterationSuperseded(RoundupError):
    """Raised when re-running an iteration that a later finalized iteration already builds on."""

    category = "iteration_superseded"


class StoreDumpInvalid(RoundupError):
    """Raised when the store dump directory is missing or a dump cannot be read."""

    category = "store_dump_invalid"
