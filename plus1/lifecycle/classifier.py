"""Lifecycle classifier.

Maps each resource to exactly one ClassificationResult. Rules are checked
in order and the first match wins:

1. archived repository            -> skipped_archived (no fetch)
2. document not found             -> no_document
3. document not parseable         -> invalid_document
4. apiVersion absent/unsupported  -> unsupported_schema
5. kind or metadata.name missing  -> invalid_document
6. spec.lifecycle absent          -> missing_lifecycle
7. lifecycle in production values -> governed
8. anything else                  -> not_governed

Any unexpected failure along the way is recorded as ``error``.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from plus1.config import EnforcementConfig
from plus1.errors import DocumentNotFoundError
from plus1.lifecycle.document import (
    InvalidDocumentError,
    extract_fields,
    load_document,
    required_field_issues,
    schema_supported,
)
from plus1.models.classification import ClassificationResult, ClassificationState
from plus1.models.resource import Resource

logger = structlog.get_logger(__name__)


class DocumentSource(Protocol):
    async def get_file_content(self, repo: str, path: str) -> str: ...


def classify_document(
    resource_id: str, text: str, config: EnforcementConfig
) -> ClassificationResult:
    """Classify a resource from the raw text of its lifecycle document."""
    try:
        document = extract_fields(load_document(text))
    except InvalidDocumentError as e:
        return ClassificationResult(
            resource_id, ClassificationState.INVALID_DOCUMENT, detail=str(e)
        )

    if not schema_supported(document.api_version, config.api_version):
        return ClassificationResult(
            resource_id,
            ClassificationState.UNSUPPORTED_SCHEMA,
            lifecycle=document.lifecycle,
            detail=(
                f"Invalid or missing apiVersion (expected {config.api_version}, "
                f"got: {document.api_version})"
            ),
        )

    issues = required_field_issues(document)
    if issues:
        return ClassificationResult(
            resource_id,
            ClassificationState.INVALID_DOCUMENT,
            lifecycle=document.lifecycle,
            detail="; ".join(issues),
        )

    if document.lifecycle is None:
        return ClassificationResult(
            resource_id,
            ClassificationState.MISSING_LIFECYCLE,
            detail="No lifecycle specified in spec.lifecycle",
        )

    if document.lifecycle in config.production_lifecycle_values:
        state = ClassificationState.GOVERNED
    else:
        state = ClassificationState.NOT_GOVERNED
    return ClassificationResult(
        resource_id, state, lifecycle=document.lifecycle, detail=f"Lifecycle: {document.lifecycle}"
    )


class LifecycleClassifier:
    """Fetches lifecycle documents and classifies resources in batches."""

    def __init__(self, source: DocumentSource, config: EnforcementConfig | None = None):
        self.source = source
        self.config = config or EnforcementConfig()

    async def classify(self, resource: Resource) -> ClassificationResult:
        """Classify one resource. Never raises for per-resource problems."""
        if resource.archived:
            return ClassificationResult(
                resource.id,
                ClassificationState.SKIPPED_ARCHIVED,
                detail="Repository is archived",
            )

        try:
            text = await self.source.get_file_content(resource.id, self.config.document_path)
        except DocumentNotFoundError:
            return ClassificationResult(
                resource.id,
                ClassificationState.NO_DOCUMENT,
                detail=f"No {self.config.document_path} file found",
            )
        except Exception as e:
            logger.error("resource_classification_failed", resource=resource.id, error=str(e))
            return ClassificationResult(
                resource.id, ClassificationState.ERROR, detail=str(e) or type(e).__name__
            )

        return classify_document(resource.id, text, self.config)

    async def classify_all(self, resources: list[Resource]) -> list[ClassificationResult]:
        """Classify every resource, ``batch_size`` at a time.

        Batches run concurrently inside and are separated by ``batch_delay``
        to stay under the API rate limits.
        """
        size = self.config.batch_size
        total_batches = (len(resources) + size - 1) // size
        logger.info(
            "classification_started", resources=len(resources), batch_size=size
        )

        results: list[ClassificationResult] = []
        for start in range(0, len(resources), size):
            batch = resources[start:start + size]
            logger.debug("batch_started", batch=start // size + 1, of=total_batches)
            batch_results = await asyncio.gather(*(self._classify_safely(r) for r in batch))
            results.extend(batch_results)

            if start + size < len(resources) and self.config.batch_delay:
                await asyncio.sleep(self.config.batch_delay)

        return results

    async def _classify_safely(self, resource: Resource) -> ClassificationResult:
        try:
            result = await self.classify(resource)
        except Exception as e:
            logger.error("resource_classification_failed", resource=resource.id, error=str(e))
            result = ClassificationResult(
                resource.id, ClassificationState.ERROR, detail=str(e) or type(e).__name__
            )
        logger.debug(
            "resource_classified",
            resource=result.resource_id,
            state=result.state.value,
            lifecycle=result.lifecycle,
        )
        return result
