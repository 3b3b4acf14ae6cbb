"""Tests for lifecycle document parsing and resource classification."""

import asyncio
import random

from fakes import FakeOrganization, entity_yaml
from plus1.config import EnforcementConfig
from plus1.errors import TransientAPIError
from plus1.lifecycle.classifier import LifecycleClassifier, classify_document
from plus1.lifecycle.document import schema_supported
from plus1.models.classification import ClassificationState
from plus1.models.resource import Resource

CONFIG = EnforcementConfig(batch_delay=0, retry_delay=0)


def _state(text: str, config: EnforcementConfig = CONFIG) -> ClassificationState:
    return classify_document("repo", text, config).state


# --- Document rules ---


def test_production_lifecycle_is_governed():
    result = classify_document("repo", entity_yaml("production"), CONFIG)
    assert result.state == ClassificationState.GOVERNED
    assert result.lifecycle == "production"
    assert result.governed


def test_capitalized_production_is_governed_by_default():
    assert _state(entity_yaml("Production")) == ClassificationState.GOVERNED


def test_lifecycle_match_is_case_sensitive():
    assert _state(entity_yaml("PRODUCTION")) == ClassificationState.NOT_GOVERNED
    only_lower = EnforcementConfig(production_lifecycle_values=("production",))
    assert _state(entity_yaml("Production"), only_lower) == ClassificationState.NOT_GOVERNED


def test_staging_lifecycle_is_not_governed():
    result = classify_document("repo", entity_yaml("staging"), CONFIG)
    assert result.state == ClassificationState.NOT_GOVERNED
    assert result.lifecycle == "staging"
    assert not result.governed


def test_unsupported_schema_wins_over_production_lifecycle():
    result = classify_document("r5", entity_yaml("production", api_version="v2.0"), CONFIG)
    assert result.state == ClassificationState.UNSUPPORTED_SCHEMA
    assert result.lifecycle == "production"
    assert "v2.0" in result.detail


def test_missing_api_version_is_unsupported():
    assert _state(entity_yaml(api_version=None)) == ClassificationState.UNSUPPORTED_SCHEMA


def test_schema_prefix_matching():
    assert schema_supported("v3.0", "v3.0")
    assert schema_supported("v3.0.1", "v3.0")
    assert not schema_supported("v3.01", "v3.0")
    assert not schema_supported("v2.0", "v3.0")
    assert not schema_supported(None, "v3.0")
    assert not schema_supported("", "v3.0")


def test_invalid_yaml_is_invalid_document():
    result = classify_document("repo", "apiVersion: v3.0\nspec: [unclosed", CONFIG)
    assert result.state == ClassificationState.INVALID_DOCUMENT
    assert "invalid YAML" in result.detail


def test_non_mapping_document_is_invalid():
    assert _state("- just\n- a list\n") == ClassificationState.INVALID_DOCUMENT
    assert _state("") == ClassificationState.INVALID_DOCUMENT


def test_non_string_lifecycle_is_invalid():
    text = "apiVersion: v3.0\nkind: service\nmetadata:\n  name: x\nspec:\n  lifecycle: 3\n"
    assert _state(text) == ClassificationState.INVALID_DOCUMENT


def test_missing_required_fields_are_invalid():
    result = classify_document("repo", entity_yaml(kind=None), CONFIG)
    assert result.state == ClassificationState.INVALID_DOCUMENT
    assert "kind" in result.detail

    text = "apiVersion: v3.0\nkind: service\nspec:\n  lifecycle: production\n"
    result = classify_document("repo", text, CONFIG)
    assert result.state == ClassificationState.INVALID_DOCUMENT
    assert "metadata.name" in result.detail


def test_missing_lifecycle():
    result = classify_document("repo", entity_yaml(lifecycle=None), CONFIG)
    assert result.state == ClassificationState.MISSING_LIFECYCLE
    assert result.lifecycle is None
    assert _state(entity_yaml(lifecycle="")) == ClassificationState.MISSING_LIFECYCLE


def test_first_document_of_multi_document_file_is_used():
    text = entity_yaml("production") + "---\n" + entity_yaml("staging", name="other")
    assert _state(text) == ClassificationState.GOVERNED


# --- Fetching classifier ---


def test_archived_repository_is_never_fetched():
    org = FakeOrganization()
    org.add_repo("old", entity_yaml("production"), archived=True)
    classifier = LifecycleClassifier(org, CONFIG)

    result = asyncio.run(classifier.classify(Resource("old", archived=True)))
    assert result.state == ClassificationState.SKIPPED_ARCHIVED
    assert org.fetches == []


def test_missing_document():
    org = FakeOrganization()
    org.add_repo("bare")
    result = asyncio.run(LifecycleClassifier(org, CONFIG).classify(Resource("bare")))
    assert result.state == ClassificationState.NO_DOCUMENT
    assert "entity.datadog.yaml" in result.detail


def test_fetch_failure_becomes_error():
    org = FakeOrganization()
    org.add_repo("flaky", entity_yaml("production"))
    org.failures["flaky"] = TransientAPIError("GET contents: server error 502", 502)

    result = asyncio.run(LifecycleClassifier(org, CONFIG).classify(Resource("flaky")))
    assert result.state == ClassificationState.ERROR
    assert "502" in result.detail
    assert not result.governed


def test_unexpected_exception_becomes_error():
    org = FakeOrganization()
    org.add_repo("weird", entity_yaml("production"))
    org.failures["weird"] = RuntimeError("boom")

    result = asyncio.run(LifecycleClassifier(org, CONFIG).classify(Resource("weird")))
    assert result.state == ClassificationState.ERROR
    assert result.detail == "boom"


def test_classify_all_isolates_failures_across_batches():
    org = FakeOrganization()
    for i in range(7):
        org.add_repo(f"repo-{i}", entity_yaml("production" if i % 2 else "staging"))
    org.failures["repo-3"] = RuntimeError("network down")

    config = EnforcementConfig(batch_size=3, batch_delay=0, retry_delay=0)
    resources = [Resource(r["name"]) for r in org.repositories]
    results = asyncio.run(LifecycleClassifier(org, config).classify_all(resources))

    assert len(results) == 7
    states = {r.resource_id: r.state for r in results}
    assert states["repo-3"] == ClassificationState.ERROR
    assert states["repo-1"] == ClassificationState.GOVERNED
    assert states["repo-5"] == ClassificationState.GOVERNED
    assert states["repo-0"] == ClassificationState.NOT_GOVERNED
    assert states["repo-6"] == ClassificationState.NOT_GOVERNED


def test_classify_all_is_independent_of_batch_size_and_order():
    org = FakeOrganization()
    for i in range(12):
        org.add_repo(f"repo-{i}", entity_yaml(["production", "staging", None][i % 3]))
    resources = [Resource(r["name"]) for r in org.repositories]

    baseline = None
    for batch_size in (1, 4, 5, 50):
        shuffled = resources[:]
        random.Random(batch_size).shuffle(shuffled)
        config = EnforcementConfig(batch_size=batch_size, batch_delay=0)
        results = asyncio.run(LifecycleClassifier(org, config).classify_all(shuffled))
        as_set = {(r.resource_id, r.state) for r in results}
        if baseline is None:
            baseline = as_set
        assert as_set == baseline
