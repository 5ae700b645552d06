"""Translate engine errors to user-friendly messages."""

import re
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class UserFriendlyError:
    """User-friendly error representation."""
    original_error: Exception
    title: str
    explanation: str
    actions: List[str]
    documentation: Optional[str] = None
    show_technical: bool = False


class ErrorTranslator:
    """Translate technical errors to user-friendly messages."""

    ERROR_PATTERNS = {
        r"ConditionSyntaxError": {
            "title": "Condition could not be parsed",
            "explanation": "A step's 'condition' is not a valid boolean expression. Conditions may use flow.<field>, state[\"key\"], comparisons, and/or/not.",
            "actions": [
                "Check quoting of string literals in the condition",
                "Validate the workflow: rule-pipeline check <workflow>",
            ],
            "documentation": "README.md#conditions"
        },

        r"ConditionEvaluationError": {
            "title": "Condition failed at runtime",
            "explanation": "The condition compiled but raised while being evaluated against the flow object.",
            "actions": [
                "Check the types of the fields the condition compares",
                "Guard optional fields, e.g. flow.total != null and flow.total > 10",
            ],
        },

        r"UnsupportedOperatorError": {
            "title": "Unknown validation operator",
            "explanation": "A Simple validation step names an operator the engine does not implement.",
            "actions": [
                "Use one of: equals, notequals, greaterthan, greaterthanorequal, lessthan, "
                "lessthanorequal, between, contains, startswith, endswith, regex, isnull, "
                "isnotnull, listcontains, listcount",
            ],
        },

        r"MissingImplementationError": {
            "title": "Rule implementation not registered",
            "explanation": "A step refers to an implementationKey that no plugin registered.",
            "actions": [
                "Load the plugin that registers it: --plugin <module>",
                "Add the module to 'plugins' in rule-pipeline.yaml",
                "Check the key for typos (keys are case-sensitive)",
            ],
        },

        r"WorkflowNotFoundError|SubFlow .* not found": {
            "title": "Workflow definition missing",
            "explanation": "A workflow or referenced sub-flow has no JSON file in the workflows directory.",
            "actions": [
                "List available workflows: rule-pipeline list",
                "Check workflows_dir in rule-pipeline.yaml or pass --workflows-dir",
            ],
        },

        r"WorkflowDefinitionError|JSONDecodeError": {
            "title": "Workflow definition is invalid",
            "explanation": "The workflow JSON could not be parsed or a step is missing required fields.",
            "actions": [
                "SubFlow and Foreach steps need 'subFlowRef'",
                "Simple validations need 'targetProperty' and 'operator'",
                "Validate the workflow: rule-pipeline check <workflow>",
            ],
        },
    }

    def translate(self, error: Exception) -> UserFriendlyError:
        """Convert exception to user-friendly format."""
        error_str = str(error)
        error_type = type(error).__name__
        full_error = f"{error_type}: {error_str}"

        for pattern, translation in self.ERROR_PATTERNS.items():
            if re.search(pattern, full_error, re.IGNORECASE):
                return UserFriendlyError(
                    original_error=error,
                    title=translation["title"],
                    explanation=translation["explanation"],
                    actions=translation["actions"],
                    documentation=translation.get("documentation"),
                    show_technical=False
                )

        return UserFriendlyError(
            original_error=error,
            title="Unexpected error",
            explanation=str(error),
            actions=[
                "Re-run with --log-level DEBUG for the full traceback",
                "Check the rule implementation that was executing",
            ],
            show_technical=True
        )

    def format_for_cli(self, friendly_error: UserFriendlyError) -> str:
        """Format error for CLI display."""
        output = f"[bold red]{friendly_error.title}[/]\n\n"
        output += f"{friendly_error.explanation}\n\n"

        output += "[bold]How to fix:[/]\n"
        for i, action in enumerate(friendly_error.actions, 1):
            output += f"  {i}. {action}\n"

        if friendly_error.documentation:
            output += f"\n[dim]Learn more: {friendly_error.documentation}[/]"

        if friendly_error.show_technical:
            output += f"\n\n[dim]Technical details:[/]\n[dim]{friendly_error.original_error}[/]"

        return output
