"""Render workflow templates against workspace metadata.

Templates use the Go ``text/template`` action grammar (see
``technocrat.mcp.gotemplate``) and are executed with Jinja2.  Two entry
points exist: ``process_template`` exposes the basic function library,
``process_template_with_context`` adds ``readSpec``/``readPlan``/
``readTasks``/``readFile`` bound to the workspace root and feature.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from technocrat.mcp.errors import (
    TemplateErrorKind,
    TemplateExecuteError,
    TemplateParseError,
)
from technocrat.mcp.gotemplate import compile_template

logger = logging.getLogger(__name__)

LEGACY_ARGUMENTS_TOKEN = "$ARGUMENTS"
ARGUMENTS_PLACEHOLDER = "{{.Arguments}}"

# Go reference-time layout elements, longest alternatives first.
_LAYOUT_RE = re.compile(
    r"2006|January|Jan|Monday|Mon|MST|Z07:00|-07:00|-0700"
    r"|\.000000000|\.000000|\.000|PM|pm|01|02|03|04|05|06|15|_2|1|2|3|4|5"
)


def _utc_offset(moment: datetime, colon: bool, zulu: bool = False) -> str:
    offset = moment.utcoffset()
    seconds = int(offset.total_seconds()) if offset is not None else 0
    if zulu and seconds == 0:
        return "Z"
    sign = "-" if seconds < 0 else "+"
    hours, minutes = divmod(abs(seconds) // 60, 60)
    separator = ":" if colon else ""
    return f"{sign}{hours:02d}{separator}{minutes:02d}"


_LAYOUT_ELEMENTS: dict[str, Callable[[datetime], str]] = {
    "2006": lambda t: f"{t.year:04d}",
    "06": lambda t: f"{t.year % 100:02d}",
    "January": lambda t: t.strftime("%B"),
    "Jan": lambda t: t.strftime("%b"),
    "Monday": lambda t: t.strftime("%A"),
    "Mon": lambda t: t.strftime("%a"),
    "01": lambda t: f"{t.month:02d}",
    "1": lambda t: str(t.month),
    "02": lambda t: f"{t.day:02d}",
    "_2": lambda t: f"{t.day:>2}",
    "2": lambda t: str(t.day),
    "15": lambda t: f"{t.hour:02d}",
    "03": lambda t: f"{t.hour % 12 or 12:02d}",
    "3": lambda t: str(t.hour % 12 or 12),
    "04": lambda t: f"{t.minute:02d}",
    "4": lambda t: str(t.minute),
    "05": lambda t: f"{t.second:02d}",
    "5": lambda t: str(t.second),
    "PM": lambda t: "PM" if t.hour >= 12 else "AM",
    "pm": lambda t: "pm" if t.hour >= 12 else "am",
    "MST": lambda t: t.tzname() or "UTC",
    "-0700": lambda t: _utc_offset(t, colon=False),
    "-07:00": lambda t: _utc_offset(t, colon=True),
    "Z07:00": lambda t: _utc_offset(t, colon=True, zulu=True),
    ".000": lambda t: f".{t.microsecond // 1000:03d}",
    ".000000": lambda t: f".{t.microsecond:06d}",
    ".000000000": lambda t: f".{t.microsecond * 1000:09d}",
}


def format_go_layout(moment: datetime, layout: str) -> str:
    """Format *moment* using a Go reference layout such as ``2006-01-02``."""
    return _LAYOUT_RE.sub(lambda m: _LAYOUT_ELEMENTS[m.group()](moment), layout)


class Timestamp(datetime):
    """A datetime exposing the Go ``time.Time`` methods templates use."""

    @classmethod
    def current(cls) -> Timestamp:
        """Return the current local time, timezone-aware."""
        local = datetime.now().astimezone()
        return cls.fromtimestamp(local.timestamp(), local.tzinfo)

    def Format(self, layout: str) -> str:  # noqa: N802
        return format_go_layout(self, layout)

    def Year(self) -> int:  # noqa: N802
        return self.year

    def Unix(self) -> int:  # noqa: N802
        return int(self.timestamp())

    def __str__(self) -> str:
        return self.Format("2006-01-02 15:04:05 -0700 MST")


@dataclass
class TemplateData:
    """Values available to a template during one render pass.

    Field names are exposed to templates in Go style (``.Arguments``,
    ``.CommandName``, ...). Empty strings mean "no value".
    """

    arguments: str = ""
    command_name: str = ""
    timestamp: Timestamp = field(default_factory=Timestamp.current)
    project_name: str = ""
    feature_name: str = ""
    workspace_root: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def template_fields(self) -> dict[str, Any]:
        """Return the template-visible fields keyed by their Go names."""
        return {
            "Arguments": self.arguments,
            "CommandName": self.command_name,
            "Timestamp": self.timestamp,
            "ProjectName": self.project_name,
            "FeatureName": self.feature_name,
            "WorkspaceRoot": self.workspace_root,
            "Extra": self.extra,
        }


# ── Function library ─────────────────────────────────────────────────


def _upper(text: str) -> str:
    return text.upper()


def _lower(text: str) -> str:
    return text.lower()


def title_case(text: str) -> str:
    """Capitalize the first letter of every word."""
    return re.sub(r"(?<!\w)\w", lambda m: m.group().upper(), text)


def _trim(text: str) -> str:
    return text.strip()


def _go_str(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _and(first: Any, *rest: Any) -> Any:
    for value in (first, *rest):
        if not value:
            return value
    return (first, *rest)[-1]


def _or(first: Any, *rest: Any) -> Any:
    for value in (first, *rest):
        if value:
            return value
    return (first, *rest)[-1]


def _not(value: Any) -> bool:
    return not value


def _eq(first: Any, *others: Any) -> bool:
    if not others:
        raise TypeError("missing argument for comparison")
    return any(first == other for other in others)


def _ne(left: Any, right: Any) -> bool:
    return left != right


def _lt(left: Any, right: Any) -> bool:
    return left < right


def _le(left: Any, right: Any) -> bool:
    return left <= right


def _gt(left: Any, right: Any) -> bool:
    return left > right


def _ge(left: Any, right: Any) -> bool:
    return left >= right


def _len(value: Any) -> int:
    return len(value)


def _index(value: Any, *keys: Any) -> Any:
    for key in keys:
        value = value.get(key) if isinstance(value, Mapping) else value[key]
    return value


def _print(*args: Any) -> str:
    """Concatenate operands, spacing those where neither side is a string."""
    parts: list[str] = []
    for position, arg in enumerate(args):
        if (
            position
            and not isinstance(arg, str)
            and not isinstance(args[position - 1], str)
        ):
            parts.append(" ")
        parts.append(_go_str(arg))
    return "".join(parts)


def _println(*args: Any) -> str:
    return " ".join(_go_str(arg) for arg in args) + "\n"


_VERB_RE = re.compile(
    r"%(?P<flags>[-+# 0]*)(?P<width>\d*)(?:\.(?P<prec>\d+))?(?P<verb>[a-zA-Z%])"
)


def _printf(layout: str, *args: Any) -> str:
    """Format like Go's ``fmt.Sprintf`` for the common verbs."""
    remaining = list(args)

    def substitute(match: re.Match[str]) -> str:
        verb = match.group("verb")
        if verb == "%":
            return "%"
        if not remaining:
            return f"%!{verb}(MISSING)"
        value = remaining.pop(0)
        spec = match.group("flags") + match.group("width")
        if match.group("prec") is not None:
            spec += "." + match.group("prec")
        if verb in ("v", "s", "t"):
            return ("%" + spec + "s") % _go_str(value)
        if verb == "q":
            return ("%" + spec + "s") % json.dumps(_go_str(value))
        if verb in ("d", "f", "e", "g", "x", "X", "o", "c"):
            return ("%" + spec + verb) % value
        return f"%!{verb}({_go_str(value)})"

    return _VERB_RE.sub(substitute, layout)


BASE_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "upper": _upper,
    "lower": _lower,
    "title": title_case,
    "trim": _trim,
    "now": Timestamp.current,
    "and": _and,
    "or": _or,
    "not": _not,
    "eq": _eq,
    "ne": _ne,
    "lt": _lt,
    "le": _le,
    "gt": _gt,
    "ge": _ge,
    "len": _len,
    "index": _index,
    "print": _print,
    "println": _println,
    "printf": _printf,
}


def read_feature_file(workspace_root: str, feature_name: str, filename: str) -> str:
    """Read ``<workspace_root>/specs/<feature_name>/<filename>``.

    Returns an empty string when either location part is empty or the
    file is missing or unreadable.
    """
    if not workspace_root or not feature_name:
        return ""
    path = Path(workspace_root) / "specs" / feature_name / filename
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.debug("Feature file %s not readable", path, exc_info=True)
        return ""


def context_functions(
    workspace_root: str, feature_name: str
) -> dict[str, Callable[..., Any]]:
    """Build the file-reading functions bound to one feature directory."""

    def read_spec() -> str:
        return read_feature_file(workspace_root, feature_name, "spec.md")

    def read_plan() -> str:
        return read_feature_file(workspace_root, feature_name, "plan.md")

    def read_tasks() -> str:
        return read_feature_file(workspace_root, feature_name, "tasks.md")

    def read_file(name: str) -> str:
        return read_feature_file(workspace_root, feature_name, name)

    return {
        "readSpec": read_spec,
        "readPlan": read_plan,
        "readTasks": read_tasks,
        "readFile": read_file,
    }


# ── Runtime helpers referenced by compiled templates ─────────────────

_MISSING = object()
_CALL_ERRORS = (
    TypeError,
    ValueError,
    AttributeError,
    KeyError,
    IndexError,
    ArithmeticError,
)


class _Record:
    """Struct-like value: unknown field names are errors, not empty."""

    def __init__(self, type_name: str, values: dict[str, Any]) -> None:
        self.type_name = type_name
        self.values = values


def _field(value: Any, name: str, line: int) -> Any:
    if value is None:
        raise TemplateExecuteError(
            TemplateErrorKind.MISSING_VALUE, line, f"nil pointer evaluating .{name}"
        )
    if isinstance(value, _Record):
        if name not in value.values:
            raise TemplateExecuteError(
                TemplateErrorKind.UNKNOWN_FIELD,
                line,
                f"can't evaluate field {name} in type {value.type_name}",
            )
        return value.values[name]
    if isinstance(value, Mapping):
        return value.get(name)

    attr = getattr(value, name, _MISSING) if name[:1].isupper() else _MISSING
    if attr is _MISSING:
        raise TemplateExecuteError(
            TemplateErrorKind.UNKNOWN_FIELD,
            line,
            f"can't evaluate field {name} in type {type(value).__name__}",
        )
    if callable(attr):
        try:
            return attr()
        except _CALL_ERRORS as exc:
            raise TemplateExecuteError(
                TemplateErrorKind.BAD_CALL, line, f"error calling {name}: {exc}"
            ) from exc
    return attr


def _method(value: Any, name: str, line: int, *args: Any) -> Any:
    if value is None:
        raise TemplateExecuteError(
            TemplateErrorKind.MISSING_VALUE, line, f"nil pointer evaluating .{name}"
        )
    attr = None
    if not isinstance(value, (_Record, Mapping)) and name[:1].isupper():
        attr = getattr(value, name, None)
    if not callable(attr):
        raise TemplateExecuteError(
            TemplateErrorKind.BAD_CALL,
            line,
            f"{name} is not a method but has arguments",
        )
    try:
        return attr(*args)
    except _CALL_ERRORS as exc:
        raise TemplateExecuteError(
            TemplateErrorKind.BAD_CALL, line, f"error calling {name}: {exc}"
        ) from exc


def _iter(value: Any, line: int) -> Iterable[Any]:
    if value is None:
        return []
    if isinstance(value, int) and not isinstance(value, bool):
        return range(value)
    if isinstance(value, Mapping):
        return [value[key] for key in sorted(value, key=str)]
    if isinstance(value, (str, bytes, bool)) or not isinstance(value, Iterable):
        raise TemplateExecuteError(
            TemplateErrorKind.BAD_CALL, line, f"range can't iterate over {value!r}"
        )
    return value


def _pairs(value: Any, line: int) -> Iterable[tuple[Any, Any]]:
    if isinstance(value, Mapping):
        return [(key, value[key]) for key in sorted(value, key=str)]
    return enumerate(_iter(value, line))


def _finalize(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


_ENV = Environment(
    autoescape=False,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
    finalize=_finalize,
)
_ENV.globals.update(_field=_field, _method=_method, _iter=_iter, _pairs=_pairs)


def _render(
    body: str, data: TemplateData, functions: Mapping[str, Callable[..., Any]]
) -> str:
    compiled = compile_template(body, functions)
    try:
        template = _ENV.from_string(compiled.source)
    except TemplateSyntaxError as exc:
        raise TemplateParseError(
            TemplateErrorKind.OTHER, 0, exc.message or str(exc)
        ) from exc

    def call(name: str, line: int, *args: Any) -> Any:
        try:
            return functions[name](*args)
        except _CALL_ERRORS as exc:
            raise TemplateExecuteError(
                TemplateErrorKind.BAD_CALL, line, f"error calling {name}: {exc}"
            ) from exc

    try:
        return template.render(
            _root=_Record("TemplateData", data.template_fields()),
            _text=compiled.texts,
            _lit=compiled.literals,
            _call=call,
        )
    except UndefinedError as exc:
        raise TemplateExecuteError(TemplateErrorKind.UNKNOWN_FIELD, 0, str(exc)) from exc


def process_template(body: str, data: TemplateData) -> str:
    """Render *body* with the basic function library.

    Raises:
        TemplateParseError: If the template is malformed.
        TemplateExecuteError: If rendering fails.
    """
    return _render(body, data, BASE_FUNCTIONS)


def process_template_with_context(body: str, data: TemplateData) -> str:
    """Render *body* with the file-reading functions bound to *data*.

    ``readSpec``, ``readPlan``, ``readTasks`` and ``readFile`` resolve
    against ``data.workspace_root`` and ``data.feature_name``.
    """
    functions = {
        **BASE_FUNCTIONS,
        **context_functions(data.workspace_root, data.feature_name),
    }
    return _render(body, data, functions)


def prepare_template_content(content: str) -> str:
    """Convert legacy ``$ARGUMENTS`` tokens to ``{{.Arguments}}``."""
    return content.replace(LEGACY_ARGUMENTS_TOKEN, ARGUMENTS_PLACEHOLDER)
