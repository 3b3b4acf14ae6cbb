"""GitHub REST API access for repository inventory, entity documents and rulesets."""

from plus1.github.client import GitHubClient

__all__ = ["GitHubClient"]
