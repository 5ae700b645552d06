"""Condition expression language: tokenizer, parser and compiler.

Conditions are small boolean expressions evaluated against the pipeline::

    flow.total > 100 and state["tier"] == "gold"
    not flow.is_exempt || len(flow.items) >= 3
    "vip" in flow.tags

Names available to an expression: ``flow`` (the current flow object),
``state`` (the shared state map) and ``execution_id``. Member access and
indexing go through the field accessors; a missing field or key yields
null rather than an error. Ordering comparisons involving null are false.

``compile_expression`` parses once and returns a CompiledCondition whose
nodes are nested closures, so repeated evaluation does no parsing.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import ConditionEvaluationError, ConditionSyntaxError
from .accessors import string_form, try_get_field

ROOT_NAMES = ("flow", "state", "execution_id")

_KEYWORDS = {"and", "or", "not", "in", "true", "false", "null", "none"}

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>==|!=|<=|>=|&&|\|\||[<>!()\[\].,\-])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


@dataclass(frozen=True)
class Token:
    kind: str  # number, string, name, keyword, op, end
    value: str
    pos: int


def tokenize(text: str) -> List[Token]:
    """Split condition text into tokens."""
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_PATTERN.match(text, pos)
        if not match:
            raise ConditionSyntaxError(text, f"unexpected character {text[pos]!r}", pos)
        kind = match.lastgroup
        value = match.group()
        if kind == "name" and value.lower() in _KEYWORDS:
            tokens.append(Token("keyword", value.lower(), pos))
        elif kind != "ws":
            tokens.append(Token(kind, value, pos))
        pos = match.end()
    tokens.append(Token("end", "", len(text)))
    return tokens


def _unquote(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


# --- AST ---


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Name:
    id: str


@dataclass(frozen=True)
class Attribute:
    target: Any
    name: str


@dataclass(frozen=True)
class Index:
    target: Any
    key: Any


@dataclass(frozen=True)
class Call:
    func: str
    args: Tuple[Any, ...]


@dataclass(frozen=True)
class Negate:
    operand: Any


@dataclass(frozen=True)
class Not:
    operand: Any


@dataclass(frozen=True)
class BoolOp:
    op: str  # "and" | "or"
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Compare:
    op: str  # == != < <= > >= in notin
    left: Any
    right: Any


# --- Parser ---


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _match(self, kind: str, *values: str) -> Optional[Token]:
        token = self.current
        if token.kind == kind and (not values or token.value in values):
            return self._advance()
        return None

    def _expect(self, kind: str, value: str) -> Token:
        token = self._match(kind, value)
        if token is None:
            raise self._error(f"expected {value!r}")
        return token

    def _error(self, reason: str) -> ConditionSyntaxError:
        token = self.current
        found = "end of input" if token.kind == "end" else repr(token.value)
        return ConditionSyntaxError(self.text, f"{reason}, found {found}", token.pos)

    def parse(self):
        node = self._or()
        if self.current.kind != "end":
            raise self._error("unexpected trailing input")
        return node

    def _or(self):
        values = [self._and()]
        while self._match("keyword", "or") or self._match("op", "||"):
            values.append(self._and())
        return values[0] if len(values) == 1 else BoolOp("or", tuple(values))

    def _and(self):
        values = [self._not()]
        while self._match("keyword", "and") or self._match("op", "&&"):
            values.append(self._not())
        return values[0] if len(values) == 1 else BoolOp("and", tuple(values))

    def _not(self):
        if self._match("keyword", "not") or self._match("op", "!"):
            return Not(self._not())
        return self._comparison()

    def _comparison(self):
        left = self._operand()
        token = self._match("op", "==", "!=", "<", "<=", ">", ">=")
        if token:
            return Compare(token.value, left, self._operand())
        if self._match("keyword", "in"):
            return Compare("in", left, self._operand())
        if self.current.kind == "keyword" and self.current.value == "not":
            # "x not in y"
            self._advance()
            self._expect("keyword", "in")
            return Compare("notin", left, self._operand())
        return left

    def _operand(self):
        if self._match("op", "-"):
            return Negate(self._operand())
        node = self._atom()
        while True:
            if self._match("op", "."):
                name = self._match("name") or self._match("keyword")
                if name is None:
                    raise self._error("expected field name after '.'")
                node = Attribute(node, name.value)
            elif self._match("op", "["):
                key = self._or()
                self._expect("op", "]")
                node = Index(node, key)
            else:
                return node

    def _atom(self):
        token = self.current
        if token.kind == "number":
            self._advance()
            return Literal(Decimal(token.value) if "." in token.value else int(token.value))
        if token.kind == "string":
            self._advance()
            return Literal(_unquote(token.value))
        if token.kind == "keyword" and token.value in ("true", "false"):
            self._advance()
            return Literal(token.value == "true")
        if token.kind == "keyword" and token.value in ("null", "none"):
            self._advance()
            return Literal(None)
        if token.kind == "name":
            self._advance()
            if self._match("op", "("):
                return self._call(token)
            if token.value not in ROOT_NAMES:
                raise ConditionSyntaxError(
                    self.text,
                    f"unknown name {token.value!r} (expected one of {', '.join(ROOT_NAMES)})",
                    token.pos,
                )
            return Name(token.value)
        if self._match("op", "("):
            node = self._or()
            self._expect("op", ")")
            return node
        raise self._error("expected a value")

    def _call(self, name_token: Token):
        if name_token.value not in FUNCTIONS:
            raise ConditionSyntaxError(
                self.text, f"unknown function {name_token.value!r}", name_token.pos
            )
        args = []
        if not self._match("op", ")"):
            args.append(self._or())
            while self._match("op", ","):
                args.append(self._or())
            self._expect("op", ")")
        return Call(name_token.value, tuple(args))


def parse_expression(text: str):
    """Parse condition text into an AST."""
    return _Parser(text).parse()


# --- Evaluation semantics ---


def _as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None
    return None


def _values_equal(left: Any, right: Any) -> bool:
    left_num, right_num = _as_decimal(left), _as_decimal(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    if isinstance(left, Enum) and isinstance(right, str):
        return right in (left.name, left.value)
    if isinstance(right, Enum) and isinstance(left, str):
        return left in (right.name, right.value)
    return left == right


def _ordered(op: str, left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    left_num, right_num = _as_decimal(left), _as_decimal(right)
    if left_num is not None and right_num is not None:
        left, right = left_num, right_num
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def _contains(container: Any, item: Any) -> bool:
    if container is None:
        return False
    if isinstance(container, str):
        return string_form(item) in container
    if isinstance(container, Mapping):
        return item in container
    return any(_values_equal(item, element) for element in container)


def _member(target: Any, name: str) -> Any:
    found, value = try_get_field(target, name)
    return value if found else None


def _index(target: Any, key: Any) -> Any:
    if target is None:
        return None
    if isinstance(target, Mapping):
        return target.get(key)
    if isinstance(target, Sequence) and not isinstance(target, (str, bytes)) and isinstance(key, int):
        return target[key] if -len(target) <= key < len(target) else None
    return _member(target, string_form(key))


def _len(value: Any) -> int:
    return 0 if value is None else len(value)


def _lower(value: Any) -> str:
    return string_form(value).lower()


def _upper(value: Any) -> str:
    return string_form(value).upper()


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": _len,
    "lower": _lower,
    "upper": _upper,
    "str": string_form,
}


# --- Compiler ---

Evaluator = Callable[[Dict[str, Any]], Any]


def _compile_node(node) -> Evaluator:
    if isinstance(node, Literal):
        value = node.value
        return lambda env: value

    if isinstance(node, Name):
        name = node.id
        return lambda env: env[name]

    if isinstance(node, Attribute):
        target = _compile_node(node.target)
        name = node.name
        return lambda env: _member(target(env), name)

    if isinstance(node, Index):
        target = _compile_node(node.target)
        key = _compile_node(node.key)
        return lambda env: _index(target(env), key(env))

    if isinstance(node, Call):
        func = FUNCTIONS[node.func]
        args = [_compile_node(arg) for arg in node.args]
        return lambda env: func(*(arg(env) for arg in args))

    if isinstance(node, Negate):
        operand = _compile_node(node.operand)
        return lambda env: -operand(env)

    if isinstance(node, Not):
        operand = _compile_node(node.operand)
        return lambda env: not operand(env)

    if isinstance(node, BoolOp):
        parts = [_compile_node(value) for value in node.values]
        if node.op == "and":
            return lambda env: all(part(env) for part in parts)
        return lambda env: any(part(env) for part in parts)

    if isinstance(node, Compare):
        left = _compile_node(node.left)
        right = _compile_node(node.right)
        op = node.op
        if op == "==":
            return lambda env: _values_equal(left(env), right(env))
        if op == "!=":
            return lambda env: not _values_equal(left(env), right(env))
        if op == "in":
            return lambda env: _contains(right(env), left(env))
        if op == "notin":
            return lambda env: not _contains(right(env), left(env))
        return lambda env: _ordered(op, left(env), right(env))

    raise TypeError(f"Unknown expression node: {node!r}")


class CompiledCondition:
    """A parsed and compiled condition, callable with a pipeline."""

    __slots__ = ("text", "tree", "_evaluate")

    def __init__(self, text: str, tree, evaluate: Evaluator):
        self.text = text
        self.tree = tree
        self._evaluate = evaluate

    def __call__(self, pipeline) -> bool:
        env = {
            "flow": pipeline.flow_object,
            "state": pipeline.state,
            "execution_id": pipeline.execution_id,
        }
        try:
            return bool(self._evaluate(env))
        except ConditionEvaluationError:
            raise
        except Exception as e:
            raise ConditionEvaluationError(self.text, f"{type(e).__name__}: {e}") from e

    def __repr__(self) -> str:
        return f"CompiledCondition({self.text!r})"


def compile_expression(text: str) -> CompiledCondition:
    """Parse and compile condition text.

    Raises:
        ConditionSyntaxError: text is not a valid expression
    """
    tree = parse_expression(text)
    return CompiledCondition(text, tree, _compile_node(tree))
