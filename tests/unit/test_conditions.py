"""Tests for ConditionEvaluator and its compile cache."""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from rule_pipeline.errors import ConditionSyntaxError
from rule_pipeline.workflow.conditions import ConditionEvaluator

from tests.unit.workflow_fixtures import context, make_order


class TestEvaluate:
    @pytest.mark.parametrize("condition", [None, "", "   ", "\n\t"])
    def test_blank_condition_is_true(self, condition):
        assert ConditionEvaluator.evaluate(condition, context()) is True
        assert ConditionEvaluator.cache_info()["size"] == 0

    def test_evaluates_against_flow_and_state(self):
        ctx = context(make_order(), {"limit": 100})
        assert ConditionEvaluator.evaluate('flow.total > state["limit"]', ctx) is True
        assert ConditionEvaluator.evaluate("flow.total < state.limit", ctx) is False

    def test_syntax_error_propagates_and_is_not_cached(self):
        with pytest.raises(ConditionSyntaxError):
            ConditionEvaluator.evaluate("flow.total >>> 1", context())
        assert not ConditionEvaluator.is_cached("flow.total >>> 1")


class TestCache:
    def test_second_compile_is_served_from_cache(self):
        first = ConditionEvaluator.compile("flow.total > 100")
        second = ConditionEvaluator.compile("flow.total > 100")

        assert first is second
        assert ConditionEvaluator.cache_info() == {"hits": 1, "misses": 1, "size": 1}

    def test_cached_condition_gives_same_results(self):
        condition = "flow.total > 100 and len(flow.items) >= 2"
        samples = [
            make_order(),
            make_order(total=Decimal("99")),
            make_order(items=[]),
        ]
        fresh = [ConditionEvaluator.evaluate(condition, context(o)) for o in samples]
        assert ConditionEvaluator.is_cached(condition)
        cached = [ConditionEvaluator.evaluate(condition, context(o)) for o in samples]

        assert fresh == cached == [True, False, False]

    def test_cache_is_keyed_by_exact_text(self):
        ConditionEvaluator.compile("flow.total > 1")
        ConditionEvaluator.compile("flow.total  > 1")
        assert ConditionEvaluator.cache_info()["size"] == 2

    def test_reset_clears_cache_and_counters(self):
        ConditionEvaluator.compile("true")
        ConditionEvaluator.compile("true")
        ConditionEvaluator.reset()
        assert ConditionEvaluator.cache_info() == {"hits": 0, "misses": 0, "size": 0}

    def test_concurrent_compiles_share_one_entry(self):
        condition = 'flow.customer == "acme"'
        with ThreadPoolExecutor(max_workers=8) as pool:
            compiled = list(pool.map(lambda _: ConditionEvaluator.compile(condition), range(64)))

        assert len({id(c) for c in compiled}) == 1
        assert ConditionEvaluator.cache_info()["size"] == 1
        assert all(c(context(make_order())) for c in compiled)
