"""Template rendering for blueprint files and destination paths.

Blueprint templates use a small action language::

    {{.Name}}                                 interpolation
    {{.Name | lower}}                         pipeline functions
    {{if eq(.UseAuth, true)}}...{{else}}...{{end}}
    {{range .Services}}- {{.}}{{else}}none{{end}}
    {{/* comment */}}   {{- .Name -}}          comments and whitespace trimming

``if`` conditions use the same grammar as manifest conditions
(:mod:`blueprint_engine.conditions`).  The action language is compiled into a
Jinja2 template and executed with ``StrictUndefined``.  Literal text and
literal arguments travel as render data, never as Jinja source, so blueprint
content can contain anything (including ``{%`` or ``{#``) verbatim.  A ``}}``
inside a quoted literal or a comment does not end the action.

Pipeline functions (the complete set):

=============  ==========================================================
``lower``      lower-case
``upper``      upper-case
``title``      title-case
``trim``       strip surrounding whitespace
``replace``    ``replace OLD NEW`` replaces every occurrence of OLD
``default``    ``default VALUE`` substitutes VALUE for an empty value
``slugify``    ``My Service`` -> ``my-service``
``snake_case`` ``MyService`` -> ``my_service``
``pascal_case`` ``my-service`` -> ``MyService``
``camel_case`` ``my-service`` -> ``myService``
=============  ==========================================================
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union

import jinja2
from jinja2 import Environment, StrictUndefined

from blueprint_engine.conditions import Node, evaluate, parse_condition, referenced_variables
from blueprint_engine.errors import (
    MalformedExpressionError,
    ManifestInvalidError,
    TemplateSyntaxError,
    UndefinedVariableError,
)
from blueprint_engine.models import FileEntry, is_empty
from blueprint_engine.utils import camel_case, pascal_case, slugify, snake_case, to_text


# ---------------------------------------------------------------------------
# Pipeline functions
# ---------------------------------------------------------------------------

def _default_filter(value: Any, fallback: Any) -> Any:
    return fallback if is_empty(value) else value


def _replace_filter(value: Any, old: Any, new: Any) -> str:
    return to_text(value).replace(to_text(old), to_text(new))


PIPELINE_FUNCTIONS: dict[str, tuple[int, Callable[..., Any]]] = {
    "lower": (0, lambda v: to_text(v).lower()),
    "upper": (0, lambda v: to_text(v).upper()),
    "title": (0, lambda v: to_text(v).title()),
    "trim": (0, lambda v: to_text(v).strip()),
    "replace": (2, _replace_filter),
    "default": (1, _default_filter),
    "slugify": (0, lambda v: slugify(to_text(v))),
    "snake_case": (0, lambda v: snake_case(to_text(v))),
    "pascal_case": (0, lambda v: pascal_case(to_text(v))),
    "camel_case": (0, lambda v: camel_case(to_text(v))),
}
"""name -> (argument count, implementation)"""


# ---------------------------------------------------------------------------
# Parsed template tree
# ---------------------------------------------------------------------------

@dataclass
class _Text:
    text: str


@dataclass
class _Operand:
    kind: str  # "var", "item", "lit"
    value: Union[str, int]


@dataclass
class _Output:
    operand: _Operand
    filters: list[tuple[str, list[Union[str, int]]]]
    line: int
    snippet: str


@dataclass
class _Branch:
    expr: str
    node: Node
    line: int
    snippet: str
    body: list[Any] = field(default_factory=list)


@dataclass
class _If:
    line: int
    snippet: str
    branches: list[_Branch] = field(default_factory=list)
    else_body: Optional[list[Any]] = None


@dataclass
class _Range:
    variable: str
    line: int
    snippet: str
    body: list[Any] = field(default_factory=list)
    else_body: Optional[list[Any]] = None


_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_PIPE_TOKEN_RE = re.compile(r"""\s*("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|\||[^\s|]+)""")
_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'"}
_COMMENT_START_RE = re.compile(r"-?\s*/\*")
_ELSE_IF_RE = re.compile(r"if(?:\s+|$)")


def _line_of(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def _action_end(text: str, start: int) -> int:
    """Index of the ``}}`` closing the action opened at *start*, or -1.

    ``}}`` inside a quoted literal or a comment does not close the action.
    """
    pos = start + 2
    comment = _COMMENT_START_RE.match(text, pos)
    if comment:
        close = text.find("*/", comment.end())
        return text.find("}}", pos if close == -1 else close + 2)
    quote = ""
    while pos < len(text):
        char = text[pos]
        if quote:
            if char == "\\":
                pos += 2
                continue
            if char == quote:
                quote = ""
        elif char in "\"'":
            quote = char
        elif text.startswith("}}", pos):
            return pos
        pos += 1
    return -1


def _literal(token: str) -> Optional[Union[str, int]]:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), token[1:-1])
    if re.fullmatch(r"[+-]?\d+", token):
        return int(token)
    return None


class _TemplateParser:
    """Turns template text into a tree of ``_Text``/``_Output``/``_If``/``_Range``."""

    def __init__(self, text: str) -> None:
        self.text = text

    def error(self, message: str, line: int, snippet: str) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, line=line, snippet=snippet)

    def parse(self) -> list[Any]:
        text = self.text
        root: list[Any] = []
        # Stack of (block, body list currently being filled)
        stack: list[tuple[Union[_If, _Range], list[Any]]] = []
        body = root
        pos = 0
        trim_next = False

        while True:
            start = text.find("{{", pos)
            chunk = text[pos:] if start == -1 else text[pos:start]
            if trim_next:
                chunk = chunk.lstrip()
            if start == -1:
                if chunk:
                    body.append(_Text(chunk))
                break

            end = _action_end(text, start)
            line = _line_of(text, start)
            if end == -1:
                raise self.error("unterminated action", line, text[start:start + 40])
            snippet = text[start:end + 2]
            inner = text[start + 2:end]

            trim_left = inner.startswith("-") and (len(inner) == 1 or inner[1].isspace())
            if trim_left:
                inner = inner[1:]
                chunk = chunk.rstrip()
            trim_next = inner.endswith("-") and len(inner) >= 2 and inner[-2].isspace()
            if trim_next:
                inner = inner[:-1]
            if chunk:
                body.append(_Text(chunk))
            pos = end + 2

            action = inner.strip()
            if not action:
                raise self.error("empty action", line, snippet)
            if action.startswith("/*"):
                if not action.endswith("*/"):
                    raise self.error("unterminated comment", line, snippet)
                continue

            keyword, *tail = action.split(None, 1)
            rest = tail[0].strip() if tail else ""

            if keyword == "if":
                block = _If(line, snippet)
                block.branches.append(self.branch(rest, line, snippet))
                body.append(block)
                stack.append((block, body))
                body = block.branches[-1].body
            elif keyword == "range":
                if not rest.startswith(".") or not _NAME_RE.match(rest[1:]):
                    raise self.error("range expects a single .VAR", line, snippet)
                block = _Range(rest[1:], line, snippet)
                body.append(block)
                stack.append((block, body))
                body = block.body
            elif keyword == "else":
                if not stack:
                    raise self.error("unexpected else", line, snippet)
                block = stack[-1][0]
                if block.else_body is not None:
                    raise self.error("else after else", line, snippet)
                else_if = _ELSE_IF_RE.match(rest)
                if else_if:
                    if not isinstance(block, _If):
                        raise self.error("else if inside range", line, snippet)
                    block.branches.append(self.branch(rest[else_if.end():].strip(), line, snippet))
                    body = block.branches[-1].body
                elif rest:
                    raise self.error("unexpected text after else", line, snippet)
                else:
                    block.else_body = []
                    body = block.else_body
            elif keyword == "end":
                if rest:
                    raise self.error("unexpected text after end", line, snippet)
                if not stack:
                    raise self.error("unexpected end", line, snippet)
                _, body = stack.pop()
            else:
                # A range's else body runs only when there is no current item.
                body.append(self.output(action, line, snippet, in_range=any(
                    isinstance(b, _Range) and b.else_body is None for b, _ in stack
                )))

        if stack:
            block = stack[-1][0]
            raise self.error("unclosed block, missing {{end}}", block.line, block.snippet)
        return root

    def branch(self, expr: str, line: int, snippet: str) -> _Branch:
        if not expr:
            raise self.error("missing condition", line, snippet)
        try:
            node = parse_condition(expr)
        except MalformedExpressionError as exc:
            raise self.error(exc.message, line, snippet) from exc
        return _Branch(expr, node, line, snippet)

    def output(self, action: str, line: int, snippet: str, *, in_range: bool) -> _Output:
        tokens: list[str] = []
        pos = 0
        while pos < len(action):
            match = _PIPE_TOKEN_RE.match(action, pos)
            if match is None:
                break
            tokens.append(match.group(1))
            pos = match.end()

        segments: list[list[str]] = [[]]
        for token in tokens:
            if token == "|":
                segments.append([])
            else:
                segments[-1].append(token)
        if any(not seg for seg in segments):
            raise self.error("empty pipeline segment", line, snippet)

        head = segments[0]
        if len(head) != 1:
            raise self.error(f"unknown action {head[0]!r}", line, snippet)
        operand = self.operand(head[0], line, snippet, in_range=in_range)

        filters: list[tuple[str, list[Union[str, int]]]] = []
        for seg in segments[1:]:
            name, raw_args = seg[0], seg[1:]
            if name not in PIPELINE_FUNCTIONS:
                raise self.error(f"unknown function {name!r}", line, snippet)
            arity = PIPELINE_FUNCTIONS[name][0]
            if len(raw_args) != arity:
                raise self.error(
                    f"{name} takes {arity} argument(s), got {len(raw_args)}", line, snippet
                )
            args: list[Union[str, int]] = []
            for raw in raw_args:
                value = _literal(raw)
                if value is None:
                    raise self.error(f"{name} arguments must be literals, got {raw!r}", line, snippet)
                args.append(value)
            filters.append((name, args))
        return _Output(operand, filters, line, snippet)

    def operand(self, token: str, line: int, snippet: str, *, in_range: bool) -> _Operand:
        if token == ".":
            if not in_range:
                raise self.error("{{.}} is only valid inside range", line, snippet)
            return _Operand("item", "")
        if token.startswith(".") and _NAME_RE.match(token[1:]):
            return _Operand("var", token[1:])
        value = _literal(token)
        if value is not None:
            return _Operand("lit", value)
        raise self.error(f"unknown action {token!r}", line, snippet)


# ---------------------------------------------------------------------------
# Compilation to Jinja2
# ---------------------------------------------------------------------------

@dataclass
class _Compiled:
    template: jinja2.Template
    literals: list[Any]
    conditions: list[_Branch]
    # (variable name, line, snippet, is range source)
    references: list[tuple[str, int, str, bool]]


class _Compiler:
    def __init__(self) -> None:
        self.literals: list[Any] = []
        self.conditions: list[_Branch] = []
        self.references: list[tuple[str, int, str, bool]] = []
        self.depth = 0

    def lit(self, value: Any) -> str:
        self.literals.append(value)
        return f"_lit[{len(self.literals) - 1}]"

    def emit(self, nodes: list[Any]) -> str:
        return "".join(self.emit_node(node) for node in nodes)

    def emit_node(self, node: Any) -> str:
        if isinstance(node, _Text):
            return "{{ " + self.lit(node.text) + " }}"
        if isinstance(node, _Output):
            return "{{ " + self.expression(node) + " }}"
        if isinstance(node, _If):
            parts = []
            for i, branch in enumerate(node.branches):
                self.conditions.append(branch)
                for name in referenced_variables(branch.node):
                    self.references.append((name, branch.line, branch.snippet, False))
                tag = "if" if i == 0 else "elif"
                parts.append(f"{{% {tag} _test({len(self.conditions) - 1}) %}}")
                parts.append(self.emit(branch.body))
            if node.else_body is not None:
                parts.append("{% else %}" + self.emit(node.else_body))
            parts.append("{% endif %}")
            return "".join(parts)
        # _Range
        self.references.append((node.variable, node.line, node.snippet, True))
        item = f"_item{self.depth}"
        self.depth += 1
        body = self.emit(node.body)
        self.depth -= 1
        out = f'{{% for {item} in _ctx["{node.variable}"] %}}' + body
        if node.else_body is not None:
            out += "{% else %}" + self.emit(node.else_body)
        return out + "{% endfor %}"

    def expression(self, node: _Output) -> str:
        operand = node.operand
        if operand.kind == "var":
            self.references.append((str(operand.value), node.line, node.snippet, False))
            expr = f'_ctx["{operand.value}"]'
        elif operand.kind == "item":
            expr = f"_item{self.depth - 1}"
        else:
            expr = self.lit(operand.value)
        for name, args in node.filters:
            if args:
                expr += f" | {name}(" + ", ".join(self.lit(a) for a in args) + ")"
            else:
                expr += f" | {name}"
        return expr


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------

class TemplateRenderer:
    """Renders blueprint templates against a ``GenerationContext``.

    Rendering is a pure function of ``(template_text, ctx)``.  Compiled
    templates are cached by text, so rendering the same destination pattern
    for many files only parses it once.
    """

    def __init__(self) -> None:
        self.env = Environment(
            autoescape=False,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            finalize=to_text,
        )
        self.env.filters.update({name: fn for name, (_, fn) in PIPELINE_FUNCTIONS.items()})
        self._cache: dict[str, _Compiled] = {}

    # -- Compilation -------------------------------------------------------

    def compile(self, template_text: str) -> _Compiled:
        cached = self._cache.get(template_text)
        if cached is not None:
            return cached
        tree = _TemplateParser(template_text).parse()
        compiler = _Compiler()
        source = compiler.emit(tree)
        compiled = _Compiled(
            template=self.env.from_string(source),
            literals=compiler.literals,
            conditions=compiler.conditions,
            references=compiler.references,
        )
        self._cache[template_text] = compiled
        return compiled

    def check_syntax(self, template_text: str) -> None:
        """Raise ``TemplateSyntaxError`` if *template_text* is malformed."""
        self.compile(template_text)

    # -- Rendering ---------------------------------------------------------

    def render(self, template_text: str, ctx: Mapping[str, Any]) -> str:
        """Render *template_text* with the variables in *ctx*.

        Raises:
            TemplateSyntaxError: Malformed template text.
            UndefinedVariableError: A referenced variable is not in *ctx*.
        """
        compiled = self.compile(template_text)

        for name, line, snippet, is_range in compiled.references:
            if name not in ctx:
                raise UndefinedVariableError(
                    f"line {line}: undefined variable {name!r} (near {snippet!r})",
                    variable=name,
                    line=line,
                )
            if is_range and not isinstance(ctx[name], (list, tuple)):
                raise TemplateSyntaxError(
                    f"range over {name!r} which is not a list", line=line, snippet=snippet
                )

        conditions = compiled.conditions

        def _test(index: int) -> bool:
            branch = conditions[index]
            try:
                return evaluate(branch.node, ctx)
            except MalformedExpressionError as exc:
                raise MalformedExpressionError(
                    f"line {branch.line}: {exc.message} (near {branch.snippet!r})",
                    condition=branch.expr,
                    line=branch.line,
                ) from exc

        try:
            return compiled.template.render(_ctx=dict(ctx), _lit=compiled.literals, _test=_test)
        except jinja2.UndefinedError as exc:
            raise UndefinedVariableError(str(exc)) from exc

    def render_path(self, destination: str, ctx: Mapping[str, Any]) -> str:
        """Render a destination path template."""
        return self.render(destination, ctx).strip()

    # -- Sources -----------------------------------------------------------

    def load_source(self, entry: FileEntry, root: Optional[Path]) -> str:
        """Return the template text for *entry*.

        Inline ``content`` wins over ``source``; an entry with neither renders
        an empty file.
        """
        if entry.content is not None:
            return entry.content
        if not entry.source:
            return ""
        if root is None:
            raise ManifestInvalidError(
                f"file {entry.source!r} has a source but the blueprint has no root directory",
                source=entry.source,
            )
        path = Path(root) / entry.source
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestInvalidError(
                f"cannot read template source {entry.source!r}: {exc}", source=entry.source
            ) from exc


def render_template(template_text: str, ctx: Mapping[str, Any]) -> str:
    """Render with a throwaway ``TemplateRenderer``."""
    return TemplateRenderer().render(template_text, ctx)
