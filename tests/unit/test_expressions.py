"""Tests for the condition expression language."""

from decimal import Decimal

import pytest

from rule_pipeline.errors import ConditionEvaluationError, ConditionSyntaxError
from rule_pipeline.workflow.expressions import (
    BoolOp,
    Compare,
    Literal,
    compile_expression,
    parse_expression,
    tokenize,
)

from tests.unit.workflow_fixtures import LineItem, Priority, context, make_order


def evaluate(text, flow=None, state=None, execution_id="exec-1"):
    return compile_expression(text)(context(flow, state, execution_id))


class TestTokenizer:
    def test_keywords_are_case_insensitive(self):
        tokens = tokenize("flow.a AND NOT True")
        kinds = [(t.kind, t.value) for t in tokens]
        assert ("keyword", "and") in kinds
        assert ("keyword", "not") in kinds
        assert ("keyword", "true") in kinds
        assert kinds[-1] == ("end", "")

    def test_unexpected_character_reports_position(self):
        with pytest.raises(ConditionSyntaxError) as exc_info:
            tokenize("flow.total = 3")
        assert exc_info.value.position == 11
        assert "Invalid Condition Syntax" in str(exc_info.value)

    def test_unterminated_string_is_rejected(self):
        with pytest.raises(ConditionSyntaxError):
            tokenize('flow.name == "abc')


class TestParser:
    def test_and_binds_tighter_than_or(self):
        tree = parse_expression("true or false and false")
        assert isinstance(tree, BoolOp)
        assert tree.op == "or"
        assert isinstance(tree.values[1], BoolOp)
        assert tree.values[1].op == "and"

    def test_not_in_parses_as_single_comparison(self):
        tree = parse_expression('"x" not in flow.tags')
        assert isinstance(tree, Compare)
        assert tree.op == "notin"

    def test_decimal_and_int_literals(self):
        assert parse_expression("1.50") == Literal(Decimal("1.50"))
        assert parse_expression("7") == Literal(7)

    @pytest.mark.parametrize("text", [
        "flow.total >",
        "flow.total > 1 1",
        "(flow.total > 1",
        "flow.",
        "order.total > 1",
        "eval(flow)",
        "",
    ])
    def test_invalid_expressions(self, text):
        with pytest.raises(ConditionSyntaxError):
            compile_expression(text)

    def test_unknown_root_name_mentions_allowed_names(self):
        with pytest.raises(ConditionSyntaxError, match="flow, state, execution_id"):
            compile_expression("order.total > 1")


class TestEvaluation:
    def test_member_comparison_with_decimal_field(self):
        order = make_order()
        assert evaluate("flow.total > 100", order) is True
        assert evaluate("flow.total >= 150.00", order) is True
        assert evaluate("flow.total < 100", order) is False

    def test_state_lookup(self):
        assert evaluate('state["tier"] == "gold"', state={"tier": "gold"}) is True
        assert evaluate("state.tier == 'gold'", state={"tier": "gold"}) is True
        assert evaluate('state["tier"] == "gold"', state={}) is False

    def test_missing_member_is_null(self):
        order = make_order()
        assert evaluate("flow.nope == null", order) is True
        assert evaluate("flow.nope.deeper == none", order) is True

    def test_ordering_with_null_is_false(self):
        order = make_order()
        assert evaluate("flow.nope > 1", order) is False
        assert evaluate("flow.nope <= 1", order) is False
        assert evaluate("null < 1", order) is False

    def test_boolean_operators(self):
        order = make_order(express=True)
        assert evaluate("flow.express and flow.total > 1", order) is True
        assert evaluate("flow.express && !flow.express", order) is False
        assert evaluate("not flow.express || true", order) is True
        assert evaluate("true or false and false") is True
        assert evaluate("(true or false) and false") is False

    def test_membership_in_list_and_string(self):
        order = make_order()
        assert evaluate('"vip" in flow.tags', order) is True
        assert evaluate('"VIP" in flow.tags', order) is False
        assert evaluate('"new" not in flow.tags', order) is True
        assert evaluate('"ORD" in flow.order_id', order) is True

    def test_membership_against_null(self):
        assert evaluate("1 in flow.nothing", make_order()) is False
        assert evaluate("1 not in flow.nothing", make_order()) is True

    def test_enum_compares_by_name_or_value(self):
        order = make_order(priority=Priority.HIGH)
        assert evaluate('flow.priority == "HIGH"', order) is True
        assert evaluate('flow.priority == "high"', order) is True
        assert evaluate('flow.priority != "LOW"', order) is True

    def test_float_and_decimal_compare_exactly(self):
        flow = {"ratio": 0.1}
        assert evaluate("flow.ratio == 0.1", flow) is True
        assert evaluate("flow.ratio < 0.2", flow) is True

    def test_functions(self):
        order = make_order()
        assert evaluate("len(flow.items) == 3", order) is True
        assert evaluate("len(flow.nothing) == 0", order) is True
        assert evaluate('lower(flow.order_id) == "ord-1"', order) is True
        assert evaluate('upper(flow.customer) == "ACME"', order) is True
        assert evaluate('str(flow.express) == "false"', order) is True

    def test_indexing_into_collections(self):
        order = make_order()
        assert evaluate('flow.items[0].sku == "A"', order) is True
        assert evaluate('flow.items[-1].sku == "C"', order) is True
        assert evaluate("flow.items[10] == null", order) is True

    def test_dict_flow_object(self):
        flow = {"customer": {"name": "acme", "credit": 500}}
        assert evaluate('flow.customer.name == "acme" and flow.customer.credit > 100', flow) is True

    def test_case_insensitive_field_fallback(self):
        item = LineItem("A", quantity=4)
        assert evaluate("flow.Quantity == 4", item) is True

    def test_string_escapes(self):
        assert evaluate("flow.name == 'it\\'s'", {"name": "it's"}) is True

    def test_execution_id(self):
        assert evaluate('execution_id == "abc"', execution_id="abc") is True

    def test_result_is_converted_to_bool(self):
        assert evaluate("flow.tags", make_order()) is True
        assert evaluate("flow.tags", make_order(tags=[])) is False

    def test_runtime_type_error_raises_evaluation_error(self):
        with pytest.raises(ConditionEvaluationError) as exc_info:
            evaluate('flow.total < "abc"', make_order())
        assert exc_info.value.condition == 'flow.total < "abc"'
        assert "TypeError" in str(exc_info.value)

    def test_compiled_condition_is_reusable(self):
        compiled = compile_expression("flow.total > 100")
        assert compiled(context(make_order())) is True
        assert compiled(context(make_order(total=Decimal("5")))) is False
        assert compiled.text == "flow.total > 100"
