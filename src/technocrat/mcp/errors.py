"""Template error types with remediation hints."""

from __future__ import annotations

from enum import Enum


class TemplateErrorKind(Enum):
    """Known categories of template failure."""

    UNCLOSED_BLOCK = "unclosed_block"
    UNEXPECTED_TOKEN = "unexpected_token"
    UNCLOSED_ACTION = "unclosed_action"
    UNKNOWN_FUNCTION = "unknown_function"
    UNKNOWN_FIELD = "unknown_field"
    MISSING_VALUE = "missing_value"
    BAD_CALL = "bad_call"
    OTHER = "other"


AVAILABLE_FUNCTIONS: tuple[str, ...] = (
    "upper",
    "lower",
    "title",
    "trim",
    "now",
    "readSpec",
    "readPlan",
    "readTasks",
    "readFile",
)

AVAILABLE_VARIABLES: tuple[str, ...] = (
    ".Arguments",
    ".CommandName",
    ".Timestamp",
    ".ProjectName",
    ".FeatureName",
    ".WorkspaceRoot",
)

HINTS: dict[TemplateErrorKind, str] = {
    TemplateErrorKind.UNCLOSED_BLOCK: (
        "Check for unclosed {{if}} or {{range}} blocks. "
        "Every {{if}} needs a {{end}}."
    ),
    TemplateErrorKind.UNEXPECTED_TOKEN: (
        "Template syntax error. "
        "Make sure you're using {{.Variable}} not <.Variable>."
    ),
    TemplateErrorKind.UNCLOSED_ACTION: (
        "Missing closing braces. Make sure every {{ has a matching }}."
    ),
    TemplateErrorKind.UNKNOWN_FUNCTION: (
        "Unknown function. Available functions: "
        + ", ".join(AVAILABLE_FUNCTIONS)
        + "."
    ),
    TemplateErrorKind.UNKNOWN_FIELD: (
        "Unknown variable. Available variables: "
        + ", ".join(AVAILABLE_VARIABLES)
        + "."
    ),
    TemplateErrorKind.MISSING_VALUE: (
        "Trying to access a field that doesn't exist. "
        "Use {{if .Field}} to check before accessing."
    ),
    TemplateErrorKind.BAD_CALL: (
        "Function call syntax error. "
        'Use {{functionName}} or {{functionName "arg"}}.'
    ),
}


class TemplateError(Exception):
    """Base class for template failures.

    Attributes:
        phase: ``"parse"`` or ``"execute"``.
        kind: Category used to pick the hint.
        line: 1-based line of the offending action (0 when unknown).
        detail: The underlying error text.
    """

    phase = "processing"

    def __init__(self, kind: TemplateErrorKind, line: int, detail: str) -> None:
        self.kind = kind
        self.line = line
        self.detail = detail
        super().__init__(self._format())

    @property
    def hint(self) -> str | None:
        """Remediation hint for this error, if one is known."""
        return HINTS.get(self.kind)

    def _format(self) -> str:
        location = f" at line {self.line}" if self.line else ""
        message = f"template {self.phase} failed{location}: {self.detail}"
        if self.hint:
            message += f"\n\nHint: {self.hint}"
        return message


class TemplateParseError(TemplateError):
    """Raised when a template is syntactically invalid."""

    phase = "parse"


class TemplateExecuteError(TemplateError):
    """Raised when rendering a parsed template fails."""

    phase = "execute"
