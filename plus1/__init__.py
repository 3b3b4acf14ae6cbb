"""Plus1 Enforcement — keeps a governance ruleset in step with repository lifecycles."""

__version__ = "0.1.0"
