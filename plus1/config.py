"""Run configuration.

Defaults reproduce the original enforcement workflow. A YAML file can
override any field; credentials and the target organization come from the
environment so they never have to live in a checked-in file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from plus1.errors import ConfigurationError

DEFAULT_API_URL = "https://api.github.com"


@dataclass(frozen=True)
class EnforcementConfig:
    """Tunable settings for a reconciliation run."""

    ruleset_name: str = "plus1_enforcement"
    ruleset_id: int | None = None
    document_path: str = "entity.datadog.yaml"
    # Exact, case-sensitive membership test; list every accepted spelling.
    production_lifecycle_values: tuple[str, ...] = ("production", "Production")
    api_version: str = "v3.0"
    batch_size: int = 10
    batch_delay: float = 1.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    request_timeout: float = 30.0
    per_page: int = 100
    api_url: str = DEFAULT_API_URL

    def __post_init__(self):
        if not self.ruleset_name and self.ruleset_id is None:
            raise ConfigurationError("Either ruleset_name or ruleset_id is required")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.retry_attempts < 1:
            raise ConfigurationError(
                f"retry_attempts must be >= 1, got {self.retry_attempts}"
            )
        for name in ("batch_delay", "retry_delay"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if not 1 <= self.per_page <= 100:
            raise ConfigurationError(f"per_page must be 1-100, got {self.per_page}")
        if not self.production_lifecycle_values:
            raise ConfigurationError("production_lifecycle_values must not be empty")

    def with_overrides(self, **overrides) -> EnforcementConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "production_lifecycle_values" in changes:
            changes["production_lifecycle_values"] = tuple(
                changes["production_lifecycle_values"]
            )
        return replace(self, **changes)


@dataclass(frozen=True)
class Credentials:
    """Token and scope resolved from the environment."""

    token: str = field(repr=False)
    organization: str


def load_config(path: str | Path | None = None) -> EnforcementConfig:
    """Load settings from a YAML file, or return the defaults."""
    if path is None:
        return EnforcementConfig()

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(EnforcementConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown config keys in {path}: {', '.join(unknown)}")

    values = dict(data)
    if "production_lifecycle_values" in values:
        lifecycle_values = values["production_lifecycle_values"]
        if isinstance(lifecycle_values, str) or not isinstance(lifecycle_values, list):
            raise ConfigurationError("production_lifecycle_values must be a list")
        values["production_lifecycle_values"] = tuple(str(v) for v in lifecycle_values)

    try:
        return EnforcementConfig(**values)
    except TypeError as e:
        raise ConfigurationError(f"Invalid config in {path}: {e}") from e


def resolve_credentials(
    token: str | None = None, organization: str | None = None
) -> Credentials:
    """Resolve the API token and target organization.

    The organization falls back to ``GITHUB_ORG`` and then to the owner of
    the repository running the workflow (``GITHUB_REPOSITORY_OWNER``).
    """
    token = token or os.environ.get("GITHUB_TOKEN", "")
    organization = (
        organization
        or os.environ.get("GITHUB_ORG", "")
        or os.environ.get("GITHUB_REPOSITORY_OWNER", "")
    )
    if not token:
        raise ConfigurationError(
            "GitHub token is required. Use --token or set GITHUB_TOKEN."
        )
    if not organization:
        raise ConfigurationError(
            "Organization is required. Use --org or set GITHUB_ORG."
        )
    return Credentials(token=token, organization=organization)
