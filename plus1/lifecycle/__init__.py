"""Lifecycle documents and the classification of resources by lifecycle.

The classifier is the only stage that talks to individual repositories.
Everything it finds, including failures, comes back as a
ClassificationResult so one bad repository never stops a run.
"""
