"""
English messages for all issue codes

Issues reported by user refinements may carry only some of the usual parameters, so every renderer reads them with
``.get`` and falls back to a more generic wording.
"""
from typing import Any

from frozendict import frozendict

from ..errors import Issue, IssueCode
from ..types import LocaleTable

_NOUNS = {"string": "characters", "array": "items", "set": "items", "file": "bytes"}


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return repr(value)


def _invalid_type(issue: Issue) -> str:
    expected = issue.params.get("expected")
    if expected is None:
        return "Invalid input: unexpected type"
    received = issue.params.get("received")
    if received == "undefined":
        return f"Invalid input: expected {expected}, received nothing"
    if received is None:
        return f"Invalid input: expected {expected}"
    return f"Invalid input: expected {expected}, received {received}"


def _bound(issue: Issue, adjective: str, limit_key: str, inclusive_symbol: str, exclusive_symbol: str) -> str:
    origin = issue.params.get("origin", "value")
    if limit_key not in issue.params:
        return f"Too {adjective}: {origin}"
    limit = issue.params[limit_key]
    if issue.params.get("exact"):
        comparison = "exactly"
    elif issue.params.get("inclusive", True):
        comparison = inclusive_symbol
    else:
        comparison = exclusive_symbol
    if origin in _NOUNS:
        return f"Too {adjective}: expected {origin} to have {comparison} {limit} {_NOUNS[origin]}"
    return f"Too {adjective}: expected {origin} to be {comparison} {limit}"


def _not_multiple_of(issue: Issue) -> str:
    if "divisor" not in issue.params:
        return "Invalid number: not a valid multiple"
    return f"Invalid number: must be a multiple of {issue.params['divisor']}"


def _invalid_format(issue: Issue) -> str:
    format_name = issue.params.get("format")
    if format_name is None:
        return "Invalid format"
    if format_name == "starts_with" and "prefix" in issue.params:
        return f'Invalid string: must start with "{issue.params["prefix"]}"'
    if format_name == "ends_with" and "suffix" in issue.params:
        return f'Invalid string: must end with "{issue.params["suffix"]}"'
    if format_name == "includes" and "includes" in issue.params:
        return f'Invalid string: must include "{issue.params["includes"]}"'
    if format_name == "regex" and "pattern" in issue.params:
        return f"Invalid string: must match pattern {issue.params['pattern']}"
    if format_name in ("lowercase", "uppercase"):
        return f"Invalid string: must be {format_name}"
    if format_name == "mime" and "mime" in issue.params:
        return f"Invalid file type: expected one of {', '.join(issue.params['mime'])}"
    return f"Invalid {format_name}"


def _invalid_value(issue: Issue) -> str:
    values = issue.params.get("values")
    if not values:
        return "Invalid option"
    if len(values) == 1:
        return f"Invalid input: expected {_stringify(values[0])}"
    return f"Invalid option: expected one of {'|'.join(_stringify(value) for value in values)}"


def _unrecognized_keys(issue: Issue) -> str:
    keys = issue.params.get("keys")
    if not keys:
        return "Unrecognized keys"
    return f"Unrecognized key{'s' if len(keys) > 1 else ''}: {', '.join(_stringify(key) for key in keys)}"


EN: LocaleTable = frozendict(
    {
        IssueCode.INVALID_TYPE: _invalid_type,
        IssueCode.INVALID_UNION: lambda issue: "Invalid input",
        IssueCode.TOO_SMALL: lambda issue: _bound(issue, "small", "minimum", ">=", ">"),
        IssueCode.TOO_BIG: lambda issue: _bound(issue, "big", "maximum", "<=", "<"),
        IssueCode.NOT_MULTIPLE_OF: _not_multiple_of,
        IssueCode.INVALID_FORMAT: _invalid_format,
        IssueCode.CUSTOM: lambda issue: "Invalid input",
        IssueCode.INVALID_VALUE: _invalid_value,
        IssueCode.UNRECOGNIZED_KEYS: _unrecognized_keys,
        IssueCode.INVALID_CONFIGURATION: lambda issue: "Invalid schema configuration",
    }
)
