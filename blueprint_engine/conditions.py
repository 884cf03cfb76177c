"""Condition expressions gating files, dependencies and post-hooks.

The grammar is deliberately tiny::

    expr    := "true" | "false" | call
    call    := fname "(" arg {"," arg} ")"
    arg     := call | ".VAR" | literal
    literal := "true" | "false" | integer | "double" or 'single' quoted string
    fname   := "eq" | "ne" | "and" | "or" | "not"

Expressions are parsed once into a small AST (parses are memoised) and
evaluated against a ``GenerationContext``.  Evaluation never touches the
clock, randomness or I/O, so the same ``(expr, ctx)`` always gives the same
answer.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

from blueprint_engine.errors import MalformedExpressionError, UnknownVariableError


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: Union[str, int, bool]


@dataclass(frozen=True)
class VarRef:
    name: str


@dataclass(frozen=True)
class Call:
    func: str
    args: tuple["Node", ...]


Node = Union[Literal, VarRef, Call]

# name -> (min args, max args); None means unbounded
FUNCTIONS: dict[str, tuple[int, Union[int, None]]] = {
    "eq": (2, 2),
    "ne": (2, 2),
    "and": (2, None),
    "or": (2, None),
    "not": (1, 1),
}


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<var>\.[A-Za-z_][A-Za-z0-9_]*)
  | (?P<int>[+-]?\d+)
  | (?P<str>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<punct>[(),])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'"}


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    pos: int


def _tokenize(expr: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(expr):
        match = _TOKEN_RE.match(expr, pos)
        if match is None:
            raise MalformedExpressionError(
                f"unexpected character {expr[pos]!r} at offset {pos} in {expr!r}",
                condition=expr,
            )
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class _Parser:
    def __init__(self, expr: str) -> None:
        self.expr = expr
        self.tokens = _tokenize(expr)
        self.index = 0

    def error(self, message: str) -> MalformedExpressionError:
        return MalformedExpressionError(f"{message} in {self.expr!r}", condition=self.expr)

    def peek(self, offset: int = 0) -> Union[_Token, None]:
        i = self.index + offset
        return self.tokens[i] if i < len(self.tokens) else None

    def take(self) -> _Token:
        token = self.peek()
        if token is None:
            raise self.error("unexpected end of expression")
        self.index += 1
        return token

    def expect(self, text: str) -> None:
        token = self.take()
        if token.text != text:
            raise self.error(f"expected {text!r} at offset {token.pos}, got {token.text!r}")

    def parse(self) -> Node:
        first = self.peek()
        if first is None:
            raise self.error("empty expression")
        if first.kind == "ident" and first.text in ("true", "false"):
            self.take()
            node: Node = Literal(first.text == "true")
        elif first.kind == "ident" and first.text in FUNCTIONS:
            node = self.parse_call()
        else:
            raise self.error(
                f"expression must be true, false or a function call, got {first.text!r}"
            )
        trailing = self.peek()
        if trailing is not None:
            raise self.error(f"unexpected {trailing.text!r} at offset {trailing.pos}")
        return node

    def parse_call(self) -> Call:
        name = self.take()
        if name.text not in FUNCTIONS:
            raise self.error(f"unknown function {name.text!r}")
        self.expect("(")
        args = [self.parse_arg()]
        while True:
            token = self.take()
            if token.text == ")":
                break
            if token.text != ",":
                raise self.error(f"expected ',' or ')' at offset {token.pos}, got {token.text!r}")
            args.append(self.parse_arg())

        low, high = FUNCTIONS[name.text]
        if len(args) < low or (high is not None and len(args) > high):
            expected = str(low) if low == high else f"at least {low}"
            raise self.error(f"{name.text}() takes {expected} argument(s), got {len(args)}")
        return Call(name.text, tuple(args))

    def parse_arg(self) -> Node:
        token = self.peek()
        if token is None:
            raise self.error("unexpected end of expression")
        if token.kind == "var":
            self.take()
            return VarRef(token.text[1:])
        if token.kind == "int":
            self.take()
            return Literal(int(token.text))
        if token.kind == "str":
            self.take()
            return Literal(_unquote(token.text))
        if token.kind == "ident":
            if token.text in ("true", "false"):
                self.take()
                return Literal(token.text == "true")
            next_token = self.peek(1)
            if next_token is not None and next_token.text == "(":
                return self.parse_call()
        raise self.error(f"unexpected {token.text!r} at offset {token.pos}")


@lru_cache(maxsize=1024)
def parse_condition(expr: str) -> Node:
    """Parse *expr* into an AST.

    Raises:
        MalformedExpressionError: On any syntax or arity error.
    """
    return _Parser(expr.strip()).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _strict_equal(left: Any, right: Any) -> bool:
    # bool is an int subclass; True must not equal 1.
    return type(left) is type(right) and left == right


def _boolean(value: Any, func: str, expr: str) -> bool:
    if not isinstance(value, bool):
        raise MalformedExpressionError(
            f"{func}() operands must be boolean, got {value!r} in {expr!r}", condition=expr
        )
    return value


def _value(node: Node, ctx: Mapping[str, Any], expr: str) -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, VarRef):
        if node.name not in ctx:
            raise UnknownVariableError(
                f"condition {expr!r} references unknown variable {node.name!r}",
                variable=node.name,
                condition=expr,
            )
        return ctx[node.name]

    if node.func == "eq":
        return _strict_equal(_value(node.args[0], ctx, expr), _value(node.args[1], ctx, expr))
    if node.func == "ne":
        return not _strict_equal(_value(node.args[0], ctx, expr), _value(node.args[1], ctx, expr))
    if node.func == "not":
        return not _boolean(_value(node.args[0], ctx, expr), "not", expr)
    if node.func == "and":
        for arg in node.args:
            if not _boolean(_value(arg, ctx, expr), "and", expr):
                return False
        return True
    # or
    for arg in node.args:
        if _boolean(_value(arg, ctx, expr), "or", expr):
            return True
    return False


def evaluate(expr: Union[str, Node], ctx: Mapping[str, Any]) -> bool:
    """Evaluate a condition against *ctx*.

    Args:
        expr: Expression text or an already-parsed AST.
        ctx: Resolved variables.

    Raises:
        MalformedExpressionError: Syntax errors or non-boolean logic operands.
        UnknownVariableError: A ``.VAR`` reference absent from *ctx*.
    """
    text = expr if isinstance(expr, str) else format_condition(expr)
    node = parse_condition(expr) if isinstance(expr, str) else expr
    return _boolean(_value(node, ctx, text), "condition", text)


def condition_holds(condition: str | None, ctx: Mapping[str, Any]) -> bool:
    """Entry gating policy: an empty or absent condition always holds."""
    if condition is None or not condition.strip():
        return True
    return evaluate(condition, ctx)


def format_condition(node: Node) -> str:
    """Render *node* back into condition syntax.

    ``parse_condition(format_condition(node)) == node`` for every parsed node.
    """
    if isinstance(node, VarRef):
        return f".{node.name}"
    if isinstance(node, Literal):
        if isinstance(node.value, bool):
            return "true" if node.value else "false"
        if isinstance(node.value, int):
            return str(node.value)
        escaped = node.value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return f"{node.func}(" + ", ".join(format_condition(arg) for arg in node.args) + ")"


def referenced_variables(node: Node) -> Iterator[str]:
    """Yield every variable name referenced by *node*, in source order."""
    if isinstance(node, VarRef):
        yield node.name
    elif isinstance(node, Call):
        for arg in node.args:
            yield from referenced_variables(arg)
