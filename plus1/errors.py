"""Exception taxonomy for reconciliation runs.

Per-resource data problems are not exceptions: they become classification
outcomes. Everything defined here is either retried at the point of
occurrence (transient API errors) or fatal to the run.
"""

from __future__ import annotations


class Plus1Error(Exception):
    """Base class for all Plus1 Enforcement errors."""


class ConfigurationError(Plus1Error):
    """The run cannot proceed because of how it was set up."""


class AuthenticationError(ConfigurationError):
    """Credentials are missing, invalid or expired."""


class EnumerationError(ConfigurationError):
    """The resource inventory could not be listed completely."""


class PolicyNotFoundError(ConfigurationError):
    """The managed policy does not exist."""

    def __init__(self, policy: str, scope: str = ""):
        self.policy = policy
        self.scope = scope
        where = f" in {scope}" if scope else ""
        super().__init__(
            f"Ruleset '{policy}' does not exist{where}. Please create it manually first."
        )


class GitHubAPIError(Plus1Error):
    """A GitHub API call returned an unexpected response."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class TransientAPIError(GitHubAPIError):
    """Network failure, timeout, server error or rate limit. Safe to retry."""


class DocumentNotFoundError(Plus1Error):
    """The lifecycle document does not exist in the resource."""


class ApplyError(Plus1Error):
    """The policy write failed; the policy is presumed unchanged."""


class ConcurrentModificationError(ApplyError):
    """The policy changed out-of-band between the read and the write."""

    def __init__(self, policy: str, expected: str, actual: str):
        self.policy = policy
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ruleset '{policy}' was modified since it was read "
            f"(revision {expected!r} -> {actual!r}); refusing to overwrite"
        )
