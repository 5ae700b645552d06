"""Tests for the Simple-validation operator engine."""

import logging
from datetime import date, datetime
from decimal import Decimal

import pytest

from rule_pipeline.errors import UnsupportedOperatorError
from rule_pipeline.workflow import operators
from rule_pipeline.workflow.operators import OperatorEngine, coerce, normalize_operator, to_decimal

from tests.unit.workflow_fixtures import Priority


@pytest.fixture
def engine():
    return OperatorEngine()


class TestNormalizeOperator:
    @pytest.mark.parametrize("raw,expected", [
        ("Equals", "equals"),
        ("NotEquals", "notequals"),
        ("not_equals", "notequals"),
        (" Not Equals ", "notequals"),
        ("==", "equals"),
        (">=", "greaterthanorequal"),
        ("<", "lessthan"),
        ("MATCH", "regex"),
        ("IsNull", "isnull"),
    ])
    def test_forms(self, raw, expected):
        assert normalize_operator(raw) == expected

    def test_supports(self, engine):
        assert engine.supports("List_Contains")
        assert engine.supports("isnotnull")
        assert not engine.supports("roughly")


class TestEquality:
    def test_string_equality_is_exact(self, engine):
        assert engine.check("gold", "equals", "gold") is True
        assert engine.check("gold", "equals", "Gold") is False
        assert engine.check("gold", "notequals", "silver") is True

    def test_numeric_text_coerced_to_decimal(self, engine):
        assert engine.check(Decimal("10.50"), "equals", "10.5") is True
        assert engine.check(5, "==", "5") is True
        assert engine.check(0.1, "equals", "0.1") is True

    def test_declared_type_drives_coercion(self, engine):
        assert engine.check(3, "equals", "3.0", int) is True
        assert engine.check(None, "equals", "3", int) is False

    def test_enum_by_name_then_value(self, engine):
        assert engine.check(Priority.HIGH, "equals", "HIGH") is True
        assert engine.check(Priority.HIGH, "equals", "high") is True
        assert engine.check(Priority.HIGH, "notequals", "LOW") is True

    def test_bool_words(self, engine):
        assert engine.check(True, "equals", "true") is True
        assert engine.check(True, "equals", "yes") is True
        assert engine.check(False, "equals", "0") is True
        assert engine.check(False, "equals", "true") is False

    def test_dates(self, engine):
        assert engine.check(date(2024, 1, 5), "equals", "2024-01-05") is True
        assert engine.check(datetime(2024, 1, 5, 9, 30), "equals", "2024-01-05T09:30:00") is True

    def test_unconvertible_target_is_false(self, engine, caplog):
        with caplog.at_level(logging.WARNING, logger="rule_pipeline.workflow.operators"):
            assert engine.check(Priority.HIGH, "equals", "URGENT") is False
        assert "Operator 'equals' failed" in caplog.text


class TestOrdering:
    def test_relational_operators(self, engine):
        assert engine.check(10.1, ">", "10") is True
        assert engine.check(Decimal("0.3"), "greaterthanorequal", "0.3") is True
        assert engine.check(2, "lessthan", "2") is False
        assert engine.check(2, "LessThanOrEqual", "2") is True

    def test_between_is_inclusive(self, engine):
        assert engine.check(15, "between", "10,20") is True
        assert engine.check(20, "between", "10,20") is True
        assert engine.check(10, "between", "10, 20") is True
        assert engine.check(21, "between", "10,20") is False

    def test_between_with_bad_bounds_is_false(self, engine):
        assert engine.check(15, "between", "10") is False

    def test_non_numeric_actual_is_false(self, engine):
        assert engine.check("abc", "greaterthan", "1") is False
        assert engine.check(None, "greaterthan", "1") is False
        assert engine.check(True, "greaterthan", "0") is False


class TestStringOperators:
    def test_case_insensitive_substrings(self, engine):
        assert engine.check("Hello World", "contains", "WORLD") is True
        assert engine.check("Hello World", "startswith", "hello") is True
        assert engine.check("Hello World", "endswith", "LD") is True
        assert engine.check(None, "contains", "x") is False

    def test_regex_searches(self, engine):
        assert engine.check("ABC-123", "regex", r"\d{3}$") is True
        assert engine.check("ABC-123", "match", r"^\d") is False

    def test_invalid_pattern_is_false(self, engine):
        assert engine.check("abc", "regex", "(") is False


class TestNullAndListOperators:
    def test_null_checks(self, engine):
        assert engine.check(None, "isnull", None) is True
        assert engine.check(0, "isnull", None) is False
        assert engine.check(0, "isnotnull", "ignored") is True

    def test_list_contains_is_case_insensitive(self, engine):
        assert engine.check(["red", "green"], "listcontains", "RED") is True
        assert engine.check(["red", "green"], "listcontains", "blue") is False
        assert engine.check([Priority.HIGH], "listcontains", "high") is True
        assert engine.check("red", "listcontains", "red") is False

    def test_list_count_is_exact(self, engine):
        assert engine.check([1, 2, 3], "listcount", "2") is False
        assert engine.check([1, 2], "listcount", "2") is True
        assert engine.check((), "listcount", "0") is True
        assert engine.check(None, "listcount", "0") is False
        assert engine.check([1, 2], "listcount", "2.9") is False
        assert engine.check([1, 2], "listcount", "two") is False
        assert engine.check([1, 2], "listcount", " 2 ") is True


class TestUnsupported:
    @pytest.mark.parametrize("operator", ["roughly", "", None])
    def test_unknown_operator_raises(self, engine, operator):
        with pytest.raises(UnsupportedOperatorError):
            engine.check(1, operator, "1")

    def test_module_level_check(self):
        assert operators.check(15, "between", "10,20") is True
        with pytest.raises(UnsupportedOperatorError):
            operators.check(15, "nearly", "10")


class TestCoercion:
    def test_coerce_types(self):
        assert coerce("3", int) == 3
        assert coerce("2.5", Decimal) == Decimal("2.5")
        assert coerce("no", bool) is False
        assert coerce("x", str) == "x"
        assert coerce("LOW", Priority) is Priority.LOW

    def test_coerce_rejects_bad_bool(self):
        with pytest.raises(ValueError):
            coerce("maybe", bool)

    def test_to_decimal_rejects_bool_and_text(self):
        with pytest.raises(ValueError):
            to_decimal(True)
        with pytest.raises(ValueError):
            to_decimal("ten")
