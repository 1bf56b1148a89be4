"""
Contains the issue taxonomy, the issue collector and the exceptions raised by the schema framework
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from frozendict import frozendict

from .types import UNDEFINED, Path


class IssueCode(str, Enum):
    """
    The closed set of issue codes. New codes may be added but existing ones are never repurposed.
    """

    INVALID_TYPE = "invalid_type"
    INVALID_UNION = "invalid_union"
    TOO_SMALL = "too_small"
    TOO_BIG = "too_big"
    NOT_MULTIPLE_OF = "not_multiple_of"
    INVALID_FORMAT = "invalid_format"
    CUSTOM = "custom"
    INVALID_VALUE = "invalid_value"
    UNRECOGNIZED_KEYS = "unrecognized_keys"
    INVALID_CONFIGURATION = "invalid_configuration"


class Severity(str, Enum):
    """
    Severity of an issue. There is only one severity at the moment.
    """

    FAILURE = "failure"


def format_path(path: Path) -> str:
    """
    Renders a path like `("users", 0, "name")` as `users[0].name`.
    """
    rendered = ""
    for key in path:
        if isinstance(key, int):
            rendered += f"[{key}]"
        elif rendered == "":
            rendered = str(key)
        else:
            rendered += f".{key}"
    return rendered


@dataclass(frozen=True)
class Issue:
    """
    One structured record of a single validation failure. Issues are never mutated after creation; the message is
    filled in by creating a new instance at the end of a parse.
    """

    code: IssueCode
    path: Path
    params: frozendict = field(default_factory=frozendict)
    message: Optional[str] = None
    severity: Severity = Severity.FAILURE
    input: Any = field(default=UNDEFINED, compare=False)

    @property
    def sub_issues(self) -> tuple[tuple["Issue", ...], ...]:
        """For `invalid_union` issues: the issues of every attempted member, in member order"""
        return self.params.get("errors", ())

    def __str__(self):
        location = format_path(self.path) or "<root>"
        return f"{location}: {self.message if self.message is not None else self.code.value}"


class IssueCollector:
    """
    An append-only, ordered log of the issues raised during one parse call. It neither deduplicates nor merges issues.
    """

    def __init__(self):
        self._issues: list[Issue] = []

    def add(self, issue: Issue) -> None:
        """Append an issue"""
        self._issues.append(issue)

    def __len__(self):
        return len(self._issues)

    def __iter__(self) -> Iterator[Issue]:
        return iter(self._issues)

    def since(self, mark: int) -> tuple[Issue, ...]:
        """Returns the issues appended after the collector had `mark` issues"""
        return tuple(self._issues[mark:])

    @property
    def issues(self) -> tuple[Issue, ...]:
        """All collected issues in insertion order"""
        return tuple(self._issues)


class PvSchemaError(Exception):
    """
    Base class of all exceptions raised by this package.
    """


class SchemaValidationError(PvSchemaError):
    """
    Raised by `parse` and `parse_async` if the input is invalid. It carries every issue found during the parse in
    depth-first, declaration order.
    """

    def __init__(self, issues: tuple[Issue, ...]):
        self.issues = issues
        super().__init__(self.pretty())

    def flatten(self) -> dict[str, Any]:
        """
        Groups the messages by the first path element. Issues at the root end up in `form_errors`.
        """
        form_errors: list[str] = []
        field_errors: dict[str, list[str]] = {}
        for issue in self.issues:
            message = str(issue.message if issue.message is not None else issue.code.value)
            if len(issue.path) == 0:
                form_errors.append(message)
            else:
                field_errors.setdefault(str(issue.path[0]), []).append(message)
        return {"form_errors": form_errors, "field_errors": field_errors}

    def pretty(self) -> str:
        """A human readable multi line summary of all issues"""
        lines = []
        for issue in self.issues:
            lines.append(f"x {issue.message if issue.message is not None else issue.code.value}")
            if len(issue.path) > 0:
                lines.append(f"  -> at {format_path(issue.path)}")
        return "\n".join(lines)


class SchemaConfigurationError(PvSchemaError):
    """
    Raised when a schema is misused by its author, e.g. a length check attached to a number schema or an asynchronous
    check executed by a synchronous parse. These errors are never collected as issues because they don't depend on
    the input.
    """

    code = IssueCode.INVALID_CONFIGURATION


class ParseAbortedError(PvSchemaError):
    """
    Raised by the asynchronous entry points if the parse did not finish in time. No partial result is available.
    """
