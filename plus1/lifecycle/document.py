"""Parsing and structural validation of entity lifecycle documents."""

from __future__ import annotations

from typing import Any

import yaml

from plus1.models.resource import LifecycleDocument


class InvalidDocumentError(ValueError):
    """The document is not structured data of the expected shape."""


def load_document(text: str) -> dict[str, Any]:
    """Parse the entity document.

    Files may hold several YAML documents; the first one describes the
    entity. A parse error anywhere in the file makes it invalid.
    """
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise InvalidDocumentError(f"File contains invalid YAML syntax: {e}") from e

    documents = [d for d in documents if d is not None]
    if not documents:
        raise InvalidDocumentError("File is empty")
    if not isinstance(documents[0], dict):
        raise InvalidDocumentError(
            f"Expected a mapping at the top level, got {type(documents[0]).__name__}"
        )
    return documents[0]


def extract_fields(data: dict[str, Any]) -> LifecycleDocument:
    """Pull the classification fields out of a parsed document."""
    metadata = data.get("metadata")
    spec = data.get("spec")
    if metadata is not None and not isinstance(metadata, dict):
        raise InvalidDocumentError("metadata must be a mapping")
    if spec is not None and not isinstance(spec, dict):
        raise InvalidDocumentError("spec must be a mapping")

    lifecycle = (spec or {}).get("lifecycle")
    if lifecycle is not None and not isinstance(lifecycle, str):
        raise InvalidDocumentError(
            f"spec.lifecycle must be a string, got {type(lifecycle).__name__}"
        )

    api_version = data.get("apiVersion")
    return LifecycleDocument(
        api_version=str(api_version) if api_version is not None else None,
        kind=_optional_str(data.get("kind")),
        metadata_name=_optional_str((metadata or {}).get("name")),
        lifecycle=lifecycle or None,
    )


def schema_supported(api_version: str | None, supported: str) -> bool:
    """True if ``api_version`` is ``supported`` or a more specific version of it.

    ``v3.0`` accepts ``v3.0`` and ``v3.0.1`` but not ``v3.01`` or ``v2.0``.
    """
    if not api_version:
        return False
    return api_version == supported or api_version.startswith(supported + ".")


def required_field_issues(document: LifecycleDocument) -> list[str]:
    """Return missing required fields. Empty list means valid."""
    issues: list[str] = []
    if not document.kind:
        issues.append("Missing kind field")
    if not document.metadata_name:
        issues.append("Missing metadata.name field")
    return issues


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
