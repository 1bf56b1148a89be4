"""
Contains the result types returned by `safe_parse` and `safe_parse_async`
"""
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeAlias, TypeVar

from .errors import Issue, IssueCode, SchemaValidationError

OutputT = TypeVar("OutputT")


@dataclass(frozen=True)
class ParseSuccess(Generic[OutputT]):
    """The input was accepted. `data` holds the (possibly transformed) output."""

    data: OutputT

    @property
    def success(self) -> Literal[True]:
        return True


@dataclass(frozen=True)
class ParseFailure:
    """
    The input was rejected. `issues` holds every issue in depth-first, declaration order with rendered messages.
    """

    issues: tuple[Issue, ...]

    @property
    def success(self) -> Literal[False]:
        return False

    @property
    def error(self) -> SchemaValidationError:
        """The exception `parse` would have raised"""
        return SchemaValidationError(self.issues)

    @property
    def num_issues_per_code(self) -> dict[IssueCode, int]:
        """Maps the issue codes to the number of times they occurred (top level issues only)"""
        counts: dict[IssueCode, int] = {}
        for issue in self.issues:
            counts[issue.code] = counts.get(issue.code, 0) + 1
        return counts


ParseResult: TypeAlias = ParseSuccess[Any] | ParseFailure
