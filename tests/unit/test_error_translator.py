"""Tests for ErrorTranslator: engine errors rendered as user-facing help."""

import json

import pytest

from rule_pipeline.errors import (
    ConditionEvaluationError,
    ConditionSyntaxError,
    MissingImplementationError,
    UnsupportedOperatorError,
    WorkflowDefinitionError,
    WorkflowNotFoundError,
)
from rule_pipeline.errors.translator import ErrorTranslator, UserFriendlyError


@pytest.fixture
def translator():
    return ErrorTranslator()


class TestTranslate:
    @pytest.mark.parametrize("error,title", [
        (ConditionSyntaxError("flow.x >", "unexpected end", 8), "Condition could not be parsed"),
        (ConditionEvaluationError("flow.a < 1", "TypeError: nope"), "Condition failed at runtime"),
        (UnsupportedOperatorError("about"), "Unknown validation operator"),
        (MissingImplementationError("rule", "orders.check"), "Rule implementation not registered"),
        (WorkflowNotFoundError("Child", "SubFlow"), "Workflow definition missing"),
        (WorkflowDefinitionError("Invalid workflow 'W': bad"), "Workflow definition is invalid"),
    ])
    def test_engine_errors(self, translator, error, title):
        result = translator.translate(error)

        assert isinstance(result, UserFriendlyError)
        assert result.title == title
        assert result.original_error is error
        assert result.actions
        assert result.show_technical is False

    def test_json_decode_error(self, translator):
        with pytest.raises(json.JSONDecodeError) as exc_info:
            json.loads("{nope")

        assert translator.translate(exc_info.value).title == "Workflow definition is invalid"

    def test_condition_syntax_links_docs(self, translator):
        result = translator.translate(ConditionSyntaxError("flow.", "expected name"))
        assert result.documentation == "README.md#conditions"

    def test_unknown_error_falls_back(self, translator):
        result = translator.translate(RuntimeError("disk on fire"))

        assert result.title == "Unexpected error"
        assert result.explanation == "disk on fire"
        assert result.show_technical is True


class TestFormatForCli:
    def test_lists_numbered_actions(self, translator):
        output = translator.format_for_cli(translator.translate(UnsupportedOperatorError("about")))

        assert "Unknown validation operator" in output
        assert "How to fix:" in output
        assert "  1. Use one of:" in output

    def test_documentation_line(self, translator):
        output = translator.format_for_cli(translator.translate(ConditionSyntaxError("x", "bad")))
        assert "Learn more: README.md#conditions" in output

    def test_technical_details_for_unknown_errors(self, translator):
        output = translator.format_for_cli(translator.translate(RuntimeError("disk on fire")))

        assert "Technical details:" in output
        assert "disk on fire" in output
