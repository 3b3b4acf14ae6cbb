"""Reconciliation pipeline stages.

- Enumerator: complete inventory of repositories in scope
- Targets: desired ruleset membership from classifications
- Policy reader: current ruleset state
- Diff: changes between desired and current membership
- Applier: single full-replace write of the membership
"""
