"""Tests for RuleRegistry and the handler adapters."""

import logging

import pytest

from rule_pipeline.core import registry as registry_module
from rule_pipeline.core.registry import (
    FunctionRule,
    PredicateValidationRule,
    Rule,
    RuleRegistry,
    ValidationRule,
)


class StampRule(Rule):
    def execute(self, pipeline, values=None):
        pipeline.state["stamped"] = True


class AlwaysInvalid(ValidationRule):
    def execute(self, pipeline, values=None, on_validation_complete=None):
        on_validation_complete(False)


class TestRegistration:
    def test_instance_is_returned_as_is(self, registry):
        rule = StampRule()
        registry.register_rule("stamp", rule)
        assert registry.resolve_rule("stamp") is rule

    def test_class_is_instantiated_per_resolution(self, registry):
        registry.register_rule("stamp", StampRule)
        first = registry.resolve_rule("stamp")
        second = registry.resolve_rule("stamp")
        assert isinstance(first, StampRule)
        assert first is not second

    def test_factory_function(self, registry):
        registry.register_validation_rule("never", lambda: AlwaysInvalid())
        assert isinstance(registry.resolve_validation_rule("never"), AlwaysInvalid)

    def test_rules_and_validation_rules_are_separate(self, registry):
        registry.register_rule("shared.key", StampRule)
        assert registry.has_rule("shared.key")
        assert not registry.has_validation_rule("shared.key")
        assert registry.resolve_validation_rule("shared.key") is None

    def test_duplicate_registration_replaces_with_warning(self, registry, caplog):
        registry.register_rule("stamp", StampRule)
        replacement = StampRule()
        with caplog.at_level(logging.WARNING, logger="rule_pipeline.core.registry"):
            registry.register_rule("stamp", replacement)
        assert registry.resolve_rule("stamp") is replacement
        assert "re-registered" in caplog.text

    @pytest.mark.parametrize("key", ["", "  ", "9lives", "has space", "x" * 201])
    def test_invalid_keys_rejected(self, registry, key):
        with pytest.raises(ValueError):
            registry.register_rule(key, StampRule)

    @pytest.mark.parametrize("key", ["orders.price_total", "Orders:Validate-Total", "_private"])
    def test_module_style_keys_accepted(self, registry, key):
        registry.register_rule(key, StampRule)
        assert registry.has_rule(key)

    def test_resolve_unknown_or_blank_key(self, registry):
        assert registry.resolve_rule("missing") is None
        assert registry.resolve_rule(None) is None
        assert registry.resolve_validation_rule("") is None

    def test_keys_sorted_and_clear(self, registry):
        registry.register_rule("b", StampRule)
        registry.register_rule("a", StampRule)
        registry.register_validation_rule("v", AlwaysInvalid)
        assert registry.rule_keys() == ["a", "b"]
        assert registry.validation_rule_keys() == ["v"]

        registry.clear()
        assert registry.rule_keys() == []
        assert registry.validation_rule_keys() == []


class TestDecorators:
    def test_function_rule(self, registry, make_pipeline):
        @registry.rule("greet")
        def greet(pipeline, values):
            pipeline.state["greeting"] = f"hello {values['name']}"

        handler = registry.resolve_rule("greet")
        assert isinstance(handler, FunctionRule)

        pipeline = make_pipeline()
        handler.execute(pipeline, {"name": "acme"})
        assert pipeline.state["greeting"] == "hello acme"

    def test_decorator_returns_original_target(self, registry):
        @registry.rule("stamp")
        class Decorated(StampRule):
            pass

        assert Decorated.__name__ == "Decorated"
        assert isinstance(registry.resolve_rule("stamp"), Decorated)

    def test_predicate_validation_rule(self, registry, make_pipeline):
        @registry.validation_rule("has_flow")
        def has_flow(pipeline):
            return pipeline.flow_object is not None

        handler = registry.resolve_validation_rule("has_flow")
        assert isinstance(handler, PredicateValidationRule)

        outcomes = []
        handler.execute(make_pipeline(), None, outcomes.append)
        handler.execute(make_pipeline(flow_object={"x": 1}), None, outcomes.append)
        assert outcomes == [False, True]

    def test_module_level_decorators_target_given_registry(self, registry):
        @registry_module.rule("mod.rule", registry=registry)
        def noop(pipeline, values):
            pass

        @registry_module.validation_rule("mod.valid", registry=registry)
        def ok(pipeline):
            return True

        assert registry.has_rule("mod.rule")
        assert registry.has_validation_rule("mod.valid")
        assert not registry_module.default_registry.has_rule("mod.rule")
