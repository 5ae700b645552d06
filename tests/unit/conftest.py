"""Shared fixtures for unit tests."""

import pytest

from rule_pipeline.core.config import clear_config_cache
from rule_pipeline.core.pipeline import RulePipeline
from rule_pipeline.core.registry import RuleRegistry
from rule_pipeline.workflow.conditions import ConditionEvaluator
from rule_pipeline.workflow.repository import InMemoryWorkflowRepository

from tests.unit.workflow_fixtures import make_order


@pytest.fixture(autouse=True)
def _reset_caches():
    """Condition and definition caches are process-wide; isolate each test."""
    ConditionEvaluator.reset()
    clear_config_cache()
    yield
    ConditionEvaluator.reset()
    clear_config_cache()


@pytest.fixture
def registry():
    return RuleRegistry()


@pytest.fixture
def repository():
    return InMemoryWorkflowRepository()


@pytest.fixture
def order():
    return make_order()


@pytest.fixture
def make_pipeline(registry, repository):
    """Factory for pipelines wired to the test registry and repository."""
    def _make(flow_object=None, state=None, **kwargs):
        return RulePipeline(
            registry=registry,
            repository=repository,
            flow_object=flow_object,
            state=state,
            **kwargs,
        )
    return _make
