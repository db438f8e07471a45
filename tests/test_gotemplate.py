"""Tests for the Go template action compiler."""

import pytest

from technocrat.mcp.errors import TemplateErrorKind, TemplateParseError
from technocrat.mcp.gotemplate import compile_template, lex, tokenize

FUNCTIONS = ("upper", "eq", "printf")


class TestLex:
    """Tests for splitting templates into text and actions."""

    def test_text_and_actions(self) -> None:
        """Test items alternate between text and actions with line numbers."""
        items = lex("Hello\n{{ .Arguments }}!")
        assert [(i.kind, i.value, i.line) for i in items] == [
            ("text", "Hello\n", 1),
            ("action", ".Arguments", 2),
            ("text", "!", 2),
        ]

    def test_close_delimiter_inside_string(self) -> None:
        """Test a quoted }} does not end the action."""
        items = lex('{{printf "}}"}}')
        assert [i.value for i in items] == ['printf "}}"']

    def test_minus_without_space_is_not_trim(self) -> None:
        """Test {{-3}} is a negative number, not a trim marker."""
        items = lex("a {{-3}}")
        assert items[0].value == "a "
        assert items[1].value == "-3"

    def test_unclosed_comment(self) -> None:
        """Test a comment that never ends."""
        with pytest.raises(TemplateParseError) as exc_info:
            lex("{{/* open")
        assert exc_info.value.kind is TemplateErrorKind.UNCLOSED_ACTION


class TestTokenize:
    """Tests for action tokenization."""

    def test_token_kinds(self) -> None:
        """Test a declaration with a pipeline."""
        kinds = [t.kind for t in tokenize('$x := .A | printf "%s" 1.5', 1)]
        assert kinds == [
            "variable",
            "declare",
            "field",
            "pipe",
            "ident",
            "string",
            "number",
        ]

    def test_unterminated_string(self) -> None:
        """Test an unterminated quote is reported."""
        with pytest.raises(TemplateParseError) as exc_info:
            tokenize('upper "abc', 3)
        assert exc_info.value.line == 3
        assert "unterminated quoted string" in str(exc_info.value)

    def test_unexpected_character(self) -> None:
        """Test characters outside the grammar."""
        with pytest.raises(TemplateParseError) as exc_info:
            tokenize(".A <b>", 1)
        assert exc_info.value.kind is TemplateErrorKind.UNEXPECTED_TOKEN


class TestCompile:
    """Tests for compiling to Jinja2 source."""

    def test_text_is_referenced_not_inlined(self) -> None:
        """Test literal text and strings live in side tables."""
        compiled = compile_template('{% raw %}{{upper "{{"}}', FUNCTIONS)
        assert "{% raw %}" not in compiled.source
        assert compiled.texts == ["{% raw %}"]
        assert compiled.literals == ["{{"]

    def test_unknown_function_rejected(self) -> None:
        """Test only the given function names may be called."""
        with pytest.raises(TemplateParseError) as exc_info:
            compile_template("{{lower .A}}", FUNCTIONS)
        assert exc_info.value.kind is TemplateErrorKind.UNKNOWN_FUNCTION

    def test_unsupported_keyword(self) -> None:
        """Test template definitions are rejected."""
        with pytest.raises(TemplateParseError) as exc_info:
            compile_template('{{define "x"}}{{end}}', FUNCTIONS)
        assert "{{define}} is not supported" in str(exc_info.value)

    def test_double_else(self) -> None:
        """Test a second else in one block."""
        with pytest.raises(TemplateParseError) as exc_info:
            compile_template("{{if .A}}a{{else}}b{{else}}c{{end}}", FUNCTIONS)
        assert "expected {{end}}; found {{else}}" in str(exc_info.value)

    def test_argument_to_non_function(self) -> None:
        """Test passing arguments to a plain value."""
        with pytest.raises(TemplateParseError) as exc_info:
            compile_template('{{"a" "b"}}', FUNCTIONS)
        assert exc_info.value.kind is TemplateErrorKind.BAD_CALL

    def test_empty_action(self) -> None:
        """Test an action with no command."""
        with pytest.raises(TemplateParseError) as exc_info:
            compile_template("{{ }}", FUNCTIONS)
        assert "missing value for command" in str(exc_info.value)

    def test_unclosed_paren(self) -> None:
        """Test a parenthesized pipeline without closing paren."""
        with pytest.raises(TemplateParseError) as exc_info:
            compile_template("{{upper (printf .A}}", FUNCTIONS)
        assert "unclosed left paren" in str(exc_info.value)

    def test_line_of_error(self) -> None:
        """Test errors carry the line of the offending action."""
        with pytest.raises(TemplateParseError) as exc_info:
            compile_template("a\nb\n{{end}}", FUNCTIONS)
        assert exc_info.value.line == 3
