"""Compile Go-style ``{{ }}`` template actions into Jinja2 source.

Workflow templates are written in the action grammar of Go's
``text/template``: field paths (``.Arguments``), variables (``$x``),
``if``/``else if``/``else``/``range``/``with``/``end`` blocks, function
calls with literal arguments, ``|`` pipelines, ``{{- -}}`` whitespace
trimming and ``{{/* */}}`` comments.  ``GoTemplateCompiler`` validates
that grammar and emits an equivalent Jinja2 template in which every
field access and function call goes through runtime helpers
(``_field``, ``_method``, ``_call``, ``_iter``, ``_pairs``) so execution
errors carry the originating line number.

Literal text and string constants are never inlined into the Jinja
source; they are referenced through the ``_text`` and ``_lit`` lists so
no escaping of Jinja's own delimiters is needed.  Template variables are
attributes of a ``namespace()`` so that ``{{$x = ...}}`` inside a range
updates the variable declared outside it, as in Go.
"""

from __future__ import annotations

import json
import re
from collections.abc import Collection
from dataclasses import dataclass, field

from technocrat.mcp.errors import TemplateErrorKind, TemplateParseError

_TRIM_CHARS = " \t\r\n"
_OPEN = "{{"
_CLOSE = "}}"

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<string>"(?:[^"\\\n]|\\.)*")
    |(?P<raw>`[^`]*`)
    |(?P<declare>:=)
    |(?P<assign>=)
    |(?P<pipe>\|)
    |(?P<lparen>\()
    |(?P<rparen>\))
    |(?P<comma>,)
    |(?P<number>[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?)
    |(?P<variable>\$\w*(?:\.[A-Za-z_]\w*)*)
    |(?P<field>(?:\.[A-Za-z_]\w*)+|\.)
    |(?P<ident>[A-Za-z_]\w*)
    """,
    re.VERBOSE,
)

_COMMENT_END_RE = re.compile(r"\*/(?P<trim>[ \t\r\n]-)?}}")

_VARS = "_vars"
_CONSTANTS: dict[str, str] = {"true": "true", "false": "false", "nil": "none"}
_UNSUPPORTED = frozenset({"define", "template", "block", "break", "continue"})


@dataclass(frozen=True)
class _Item:
    kind: str  # "text" | "action"
    value: str
    line: int


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    spaced: bool


@dataclass
class _Block:
    keyword: str
    line: int
    closers: list[str]
    dot_depth: int
    scope_depth: int
    has_else: bool = False


def _line_of(source: str, pos: int) -> int:
    return source.count("\n", 0, pos) + 1


def _find_close(source: str, pos: int) -> int:
    """Return the index of the ``}}`` closing the action starting at *pos*.

    Quoted and raw strings are skipped so ``{{print "}}"}}`` works.
    Returns -1 if the action is never closed.
    """
    quote: str | None = None
    i = pos
    while i < len(source):
        char = source[i]
        if quote:
            if char == "\\" and quote == '"':
                i += 2
                continue
            if char == quote:
                quote = None
            elif char == "\n" and quote == '"':
                return -1
        elif char in ('"', "`"):
            quote = char
        elif source.startswith(_CLOSE, i):
            return i
        i += 1
    return -1


def lex(source: str) -> list[_Item]:
    """Split a template into text and action items.

    Applies ``{{-`` / ``-}}`` trimming to the neighbouring text and drops
    comments.

    Raises:
        TemplateParseError: If an action or comment is never closed.
    """
    items: list[_Item] = []
    pos = 0
    trim_next = False
    while True:
        start = source.find(_OPEN, pos)
        text = source[pos:] if start == -1 else source[pos:start]
        if trim_next:
            text = text.lstrip(_TRIM_CHARS)

        if start == -1:
            if text:
                items.append(_Item("text", text, _line_of(source, pos)))
            return items

        inner = start + len(_OPEN)
        trim_prev = (
            source.startswith("-", inner)
            and inner + 1 < len(source)
            and source[inner + 1] in _TRIM_CHARS
        )
        if trim_prev:
            text = text.rstrip(_TRIM_CHARS)
            inner += 2
        if text:
            items.append(_Item("text", text, _line_of(source, pos)))

        line = _line_of(source, start)
        if source.startswith("/*", inner):
            close = source.find("*/", inner + 2)
            if close == -1:
                raise TemplateParseError(
                    TemplateErrorKind.UNCLOSED_ACTION, line, "unclosed comment"
                )
            match = _COMMENT_END_RE.match(source, close)
            if match is None:
                raise TemplateParseError(
                    TemplateErrorKind.UNEXPECTED_TOKEN,
                    line,
                    "comment ends before closing delimiter",
                )
            trim_next = match.group("trim") is not None
            pos = match.end()
            continue

        end = _find_close(source, inner)
        if end == -1:
            raise TemplateParseError(
                TemplateErrorKind.UNCLOSED_ACTION, line, "unclosed action"
            )
        body = source[inner:end]
        trim_next = len(body) >= 2 and body[-1] == "-" and body[-2] in _TRIM_CHARS
        if trim_next:
            body = body[:-1]
        items.append(_Item("action", body.strip(), line))
        pos = end + len(_CLOSE)


def tokenize(text: str, line: int) -> list[_Token]:
    """Split the body of one action into tokens."""
    tokens: list[_Token] = []
    pos = 0
    spaced = False
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            char = text[pos]
            if char == '"':
                detail = "unterminated quoted string"
            else:
                detail = f'unexpected "{char}" in command'
            raise TemplateParseError(TemplateErrorKind.UNEXPECTED_TOKEN, line, detail)
        kind = match.lastgroup or ""
        if kind == "space":
            spaced = True
        else:
            tokens.append(_Token(kind, match.group(), spaced))
            spaced = False
        pos = match.end()
    return tokens


class _Cursor:
    def __init__(self, tokens: list[_Token], line: int) -> None:
        self.tokens = tokens
        self.line = line
        self.pos = 0

    def peek(self, offset: int = 0) -> _Token | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def next(self) -> _Token:
        token = self.peek()
        if token is None:
            raise TemplateParseError(
                TemplateErrorKind.UNEXPECTED_TOKEN, self.line, "unexpected end of action"
            )
        self.pos += 1
        return token

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def at_boundary(self) -> bool:
        token = self.peek()
        return token is None or token.kind in ("pipe", "rparen")


@dataclass
class CompiledTemplate:
    """Jinja2 source plus the constants it references."""

    source: str
    texts: list[str] = field(default_factory=list)
    literals: list[str] = field(default_factory=list)


class GoTemplateCompiler:
    """Translate one Go-style template body into Jinja2 source.

    Args:
        source: The template text.
        functions: Names callable from the template. Calls to any other
            identifier are rejected at compile time.
    """

    def __init__(self, source: str, functions: Collection[str]) -> None:
        self._source = source
        self._functions = frozenset(functions)
        self._out: list[str] = []
        self._texts: list[str] = []
        self._literals: list[str] = []
        self._dots: list[str] = ["_root"]
        self._scopes: list[dict[str, str]] = [{}]
        self._blocks: list[_Block] = []
        self._counter = 0
        self._line = 0

    def compile(self) -> CompiledTemplate:
        """Compile the template.

        Raises:
            TemplateParseError: On any syntax error.
        """
        for item in lex(self._source):
            if item.kind == "text":
                self._emit_expr(f"_text[{len(self._texts)}]")
                self._texts.append(item.value)
            else:
                self._line = item.line
                self._action(item.value)

        if self._blocks:
            block = self._blocks[-1]
            raise TemplateParseError(
                TemplateErrorKind.UNCLOSED_BLOCK,
                block.line,
                "unexpected EOF: {{" + block.keyword + "}} has no matching {{end}}",
            )
        source = "{% set " + _VARS + " = namespace() %}" + "".join(self._out)
        return CompiledTemplate(source, self._texts, self._literals)

    # -- emission ---------------------------------------------------------

    def _emit_expr(self, expr: str) -> None:
        self._out.append("{{ " + expr + " }}")

    def _emit_tag(self, tag: str) -> None:
        self._out.append("{% " + tag + " %}")

    def _fresh(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def _error(self, kind: TemplateErrorKind, detail: str) -> TemplateParseError:
        return TemplateParseError(kind, self._line, detail)

    # -- variables --------------------------------------------------------

    def _declare(self, name: str) -> str:
        # Variables live on a namespace so assignments escape {% for %} scopes.
        target = f"{_VARS}.{self._fresh(f'v_{name}_')}"
        self._scopes[-1][name] = target
        return target

    def _lookup(self, name: str) -> str:
        if not name:
            return "_root"
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        raise self._error(
            TemplateErrorKind.UNKNOWN_FIELD, f'undefined variable "${name}"'
        )

    def _bind(self, names: list[tuple[str, str]], expr: str) -> str:
        """Store *expr* in the declared variable, if any, and return its name."""
        if not names:
            return expr
        if len(names) > 1:
            raise self._error(
                TemplateErrorKind.UNEXPECTED_TOKEN, "too many declarations in pipeline"
            )
        name, op = names[0]
        target = self._lookup(name) if op == "assign" else self._declare(name)
        self._emit_tag(f"set {target} = {expr}")
        return target

    # -- actions ----------------------------------------------------------

    def _action(self, text: str) -> None:
        cur = _Cursor(tokenize(text, self._line), self._line)
        head = cur.peek()
        if head is None:
            raise self._error(TemplateErrorKind.BAD_CALL, "missing value for command")

        if head.kind == "ident":
            if head.value in _UNSUPPORTED:
                raise self._error(
                    TemplateErrorKind.UNEXPECTED_TOKEN,
                    "{{" + head.value + "}} is not supported",
                )
            keyword = {
                "if": self._open_if,
                "range": self._open_range,
                "with": self._open_with,
                "else": self._else,
                "end": self._end,
            }.get(head.value)
            if keyword is not None:
                cur.next()
                keyword(cur)
                return

        names, expr = self._pipeline(cur, declare=True)
        self._expect_end(cur)
        if names:
            self._bind(names, expr)
        else:
            self._emit_expr(expr)

    def _expect_end(self, cur: _Cursor) -> None:
        token = cur.peek()
        if token is not None:
            raise self._error(
                TemplateErrorKind.UNEXPECTED_TOKEN,
                f'unexpected "{token.value}" in command',
            )

    def _open(self, keyword: str, closer: str) -> _Block:
        block = _Block(
            keyword, self._line, [closer], len(self._dots), len(self._scopes)
        )
        self._blocks.append(block)
        self._scopes.append({})
        return block

    def _open_if(self, cur: _Cursor) -> None:
        self._open("if", "endif")
        names, expr = self._pipeline(cur, declare=True)
        self._expect_end(cur)
        self._emit_tag(f"if {self._bind(names, expr)}")

    def _open_with(self, cur: _Cursor) -> None:
        self._open("with", "endif")
        names, expr = self._pipeline(cur, declare=True)
        self._expect_end(cur)
        self._push_with(names, expr)

    def _push_with(self, names: list[tuple[str, str]], expr: str) -> None:
        if names:
            target = self._bind(names, expr)
        else:
            target = self._fresh("_w")
            self._emit_tag(f"set {target} = {expr}")
        self._emit_tag(f"if {target}")
        self._dots.append(target)

    def _open_range(self, cur: _Cursor) -> None:
        self._open("range", "endfor")
        names, expr = self._pipeline(cur, declare=True, max_names=2)
        self._expect_end(cur)
        if any(op == "assign" for _, op in names):
            raise self._error(
                TemplateErrorKind.UNEXPECTED_TOKEN, "range can only declare variables"
            )
        element = self._fresh("_d")
        if len(names) == 2:
            index = self._fresh("_i")
            self._emit_tag(f"for {index}, {element} in _pairs({expr}, {self._line})")
            self._emit_tag(f"set {self._declare(names[0][0])} = {index}")
            self._emit_tag(f"set {self._declare(names[1][0])} = {element}")
        else:
            self._emit_tag(f"for {element} in _iter({expr}, {self._line})")
            if names:
                self._emit_tag(f"set {self._declare(names[0][0])} = {element}")
        self._dots.append(element)

    def _else(self, cur: _Cursor) -> None:
        if not self._blocks:
            raise self._error(TemplateErrorKind.UNEXPECTED_TOKEN, "unexpected {{else}}")
        block = self._blocks[-1]
        if block.has_else:
            raise self._error(
                TemplateErrorKind.UNEXPECTED_TOKEN, "expected {{end}}; found {{else}}"
            )
        del self._dots[block.dot_depth :]

        follow = cur.peek()
        if follow is None:
            block.has_else = True
            self._emit_tag("else")
            return
        if follow.kind != "ident" or follow.value not in ("if", "with"):
            raise self._error(
                TemplateErrorKind.UNEXPECTED_TOKEN,
                f'unexpected "{follow.value}" in else',
            )
        cur.next()
        names, expr = self._pipeline(cur, declare=True)
        self._expect_end(cur)

        if follow.value == "if" and not names and block.keyword != "range":
            self._emit_tag(f"elif {expr}")
            return

        # Chain as a nested block closed by the same {{end}}.
        self._emit_tag("else")
        block.closers.insert(0, "endif")
        block.keyword = follow.value
        if follow.value == "if":
            self._emit_tag(f"if {self._bind(names, expr)}")
        else:
            self._push_with(names, expr)

    def _end(self, cur: _Cursor) -> None:
        self._expect_end(cur)
        if not self._blocks:
            raise self._error(TemplateErrorKind.UNEXPECTED_TOKEN, "unexpected {{end}}")
        block = self._blocks.pop()
        for closer in block.closers:
            self._emit_tag(closer)
        del self._dots[block.dot_depth :]
        del self._scopes[block.scope_depth :]

    # -- pipelines --------------------------------------------------------

    def _declarations(self, cur: _Cursor, max_names: int) -> list[tuple[str, str]]:
        def plain_variable(token: _Token | None) -> bool:
            return (
                token is not None
                and token.kind == "variable"
                and token.value != "$"
                and "." not in token.value
            )

        first, second = cur.peek(), cur.peek(1)
        if not plain_variable(first) or second is None:
            return []
        assert first is not None
        if second.kind in ("declare", "assign"):
            cur.pos += 2
            return [(first.value[1:], second.kind)]
        third, fourth = cur.peek(2), cur.peek(3)
        if (
            max_names >= 2
            and second.kind == "comma"
            and plain_variable(third)
            and fourth is not None
            and fourth.kind == "declare"
        ):
            assert third is not None
            cur.pos += 4
            return [(first.value[1:], "declare"), (third.value[1:], "declare")]
        return []

    def _pipeline(
        self, cur: _Cursor, declare: bool = False, max_names: int = 1
    ) -> tuple[list[tuple[str, str]], str]:
        names = self._declarations(cur, max_names) if declare else []
        expr = self._command(cur, None)
        while True:
            token = cur.peek()
            if token is None or token.kind != "pipe":
                return names, expr
            cur.next()
            expr = self._command(cur, expr)

    def _command(self, cur: _Cursor, piped: str | None) -> str:
        if cur.at_boundary():
            raise self._error(TemplateErrorKind.BAD_CALL, "missing value for command")
        head = cur.peek()
        assert head is not None
        if head.kind == "ident" and head.value not in _CONSTANTS:
            cur.next()
            return self._call(head.value, cur, piped)

        expr, method = self._term(cur)
        args = self._arguments(cur)
        if piped is not None:
            args.append(piped)
        if not args:
            return expr
        if method is None:
            raise self._error(
                TemplateErrorKind.BAD_CALL,
                f"can't give argument to non-function {head.value}",
            )
        target, name = method
        return self._join("_method", target, json.dumps(name), str(self._line), *args)

    def _call(self, name: str, cur: _Cursor, piped: str | None) -> str:
        if name not in self._functions:
            raise self._error(
                TemplateErrorKind.UNKNOWN_FUNCTION, f'function "{name}" not defined'
            )
        args = self._arguments(cur)
        if piped is not None:
            args.append(piped)
        return self._join("_call", json.dumps(name), str(self._line), *args)

    @staticmethod
    def _join(func: str, *args: str) -> str:
        return f"{func}({', '.join(args)})"

    def _arguments(self, cur: _Cursor) -> list[str]:
        args: list[str] = []
        while not cur.at_boundary():
            token = cur.peek()
            assert token is not None
            if token.kind == "ident" and token.value not in _CONSTANTS:
                cur.next()
                args.append(self._call(token.value, _Cursor([], self._line), None))
            else:
                args.append(self._term(cur)[0])
        return args

    def _term(self, cur: _Cursor) -> tuple[str, tuple[str, str] | None]:
        """Parse one operand.

        Returns the expression and, when the operand ends in a field that
        may be invoked as a method, the ``(receiver, name)`` pair.
        """
        token = cur.next()
        kind = token.kind
        if kind == "field":
            return self._chain(self._dots[-1], token.value)
        if kind == "variable":
            name, _, rest = token.value[1:].partition(".")
            return self._chain(self._lookup(name), "." + rest if rest else "")
        if kind == "lparen":
            _, expr = self._pipeline(cur)
            closing = cur.peek()
            if closing is None or closing.kind != "rparen":
                raise self._error(TemplateErrorKind.UNCLOSED_ACTION, "unclosed left paren")
            cur.next()
            path = ""
            follow = cur.peek()
            if follow is not None and follow.kind == "field" and not follow.spaced:
                cur.next()
                path = follow.value
            return self._chain(expr, path)
        if kind == "string":
            try:
                value = json.loads(token.value)
            except ValueError:
                raise self._error(
                    TemplateErrorKind.UNEXPECTED_TOKEN,
                    f"invalid quoted string {token.value}",
                ) from None
            return self._literal(value), None
        if kind == "raw":
            return self._literal(token.value[1:-1]), None
        if kind == "number":
            number = token.value.lstrip("+")
            try:
                return str(int(number)), None
            except ValueError:
                return repr(float(number)), None
        if kind == "ident" and token.value in _CONSTANTS:
            return _CONSTANTS[token.value], None
        raise self._error(
            TemplateErrorKind.UNEXPECTED_TOKEN, f'unexpected "{token.value}" in operand'
        )

    def _literal(self, value: str) -> str:
        self._literals.append(value)
        return f"_lit[{len(self._literals) - 1}]"

    def _chain(self, base: str, path: str) -> tuple[str, tuple[str, str] | None]:
        names = [name for name in path.split(".") if name]
        if not names:
            return base, None
        expr = base
        for name in names[:-1]:
            expr = self._join("_field", expr, json.dumps(name), str(self._line))
        last = names[-1]
        full = self._join("_field", expr, json.dumps(last), str(self._line))
        return full, (expr, last)


def compile_template(source: str, functions: Collection[str]) -> CompiledTemplate:
    """Compile *source* into Jinja2 source. See ``GoTemplateCompiler``."""
    return GoTemplateCompiler(source, functions).compile()
