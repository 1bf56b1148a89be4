"""
Contains the check entries which can be attached to a schema. A check is either
- a validation which inspects the value and may report one issue,
- a refinement which calls a user function (possibly a coroutine function),
- a property check which parses a single property of the value with another schema or
- a transform which rewrites the value and never fails.

Every check declares the schema kinds it may be attached to. This is enforced when the check is attached, not when
data is parsed.
"""
import inspect
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Optional

from frozendict import frozendict

from .errors import IssueCode
from .types import UNDEFINED, CustomMessage, File, Kind, Path, PathKey, Predicate, SuperRefinement

if TYPE_CHECKING:
    from .execution import ParseContext
    from .schema import SchemaNode

NUMERIC_KINDS = frozenset({Kind.NUMBER, Kind.INTEGER, Kind.DATE})
INTEGRAL_KINDS = frozenset({Kind.NUMBER, Kind.INTEGER})
LENGTH_KINDS = frozenset({Kind.STRING, Kind.ARRAY, Kind.TUPLE})
SIZE_KINDS = frozenset({Kind.SET, Kind.FILE})
TEXT_KINDS = frozenset({Kind.STRING})
FILE_KINDS = frozenset({Kind.FILE})

Finding = tuple[IssueCode, dict[str, Any]]

FORMAT_PATTERNS: dict[str, re.Pattern] = {
    "email": re.compile(
        r"^(?!\.)(?!.*\.\.)[A-Za-z0-9_'+\-.]*[A-Za-z0-9_+-]@([A-Za-z0-9][A-Za-z0-9\-]*\.)+[A-Za-z]{2,}$"
    ),
    "uuid": re.compile(
        r"^([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-8][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}"
        r"|00000000-0000-0000-0000-000000000000)$"
    ),
    "url": re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://[^\s/$.?#][^\s]*$"),
    "ipv4": re.compile(r"^((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\.){3}(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)$"),
    "hex": re.compile(r"^[0-9a-fA-F]*$"),
}


def _origin(value: Any) -> str:
    """The family name of a value, used as `origin` parameter of size and length issues"""
    if isinstance(value, str):
        return "string"
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return "number"
    if isinstance(value, date):
        return "date"
    if isinstance(value, (set, frozenset)):
        return "set"
    if isinstance(value, File):
        return "file"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _size_of(value: Any) -> int:
    if isinstance(value, File):
        return value.size
    return len(value)


def _is_multiple(value: Any, divisor: Any) -> bool:
    if isinstance(value, int) and isinstance(divisor, int):
        return value % divisor == 0
    # binary floats don't divide cleanly, e.g. 0.3 % 0.1 != 0
    return Decimal(str(value)) % Decimal(str(divisor)) == 0


@dataclass(frozen=True)
class CheckEntry:
    """
    Base class of all checks. `families` is the set of schema kinds the check may be attached to; `None` means any
    kind. `message` overrides the locale for issues raised by this check.
    """

    families: ClassVar[Optional[frozenset[Kind]]] = None
    message: Optional[CustomMessage] = field(default=None, kw_only=True)

    @property
    def is_async(self) -> bool:
        """True if the check may suspend and therefore requires the asynchronous entry points"""
        return False

    def accepts_kind(self, kind: Kind) -> bool:
        """True if the check may be attached to a schema of the given kind"""
        return self.families is None or kind in self.families

    @property
    def name(self) -> str:
        """Name of the check used in error messages"""
        return type(self).__name__


@dataclass(frozen=True)
class Validation(CheckEntry):
    """
    A check which inspects the value and reports at most one issue.
    """

    def inspect(self, value: Any) -> Optional[Finding]:
        """Returns the issue code and parameters if the value violates the check, else `None`"""
        raise NotImplementedError


def _comparable(value: Any, bound: Any) -> tuple[Any, Any]:
    """
    datetime is a subclass of date but the two don't compare with each other; a datetime is compared by its calendar
    day when the other side is a plain date.
    """
    if isinstance(value, datetime) and isinstance(bound, date) and not isinstance(bound, datetime):
        return value.date(), bound
    if isinstance(bound, datetime) and isinstance(value, date) and not isinstance(value, datetime):
        return value, bound.date()
    return value, bound


@dataclass(frozen=True)
class LessThan(Validation):
    """`value < maximum` or `value <= maximum` if inclusive"""

    families = NUMERIC_KINDS
    maximum: Any
    inclusive: bool = False

    def inspect(self, value: Any) -> Optional[Finding]:
        left, right = _comparable(value, self.maximum)
        if left < right or (self.inclusive and left == right):
            return None
        return IssueCode.TOO_BIG, {"origin": _origin(value), "maximum": self.maximum, "inclusive": self.inclusive}


@dataclass(frozen=True)
class GreaterThan(Validation):
    """`value > minimum` or `value >= minimum` if inclusive"""

    families = NUMERIC_KINDS
    minimum: Any
    inclusive: bool = False

    def inspect(self, value: Any) -> Optional[Finding]:
        left, right = _comparable(value, self.minimum)
        if left > right or (self.inclusive and left == right):
            return None
        return IssueCode.TOO_SMALL, {"origin": _origin(value), "minimum": self.minimum, "inclusive": self.inclusive}


@dataclass(frozen=True)
class MultipleOf(Validation):
    families = INTEGRAL_KINDS
    divisor: int | float

    def __post_init__(self):
        if self.divisor == 0:
            raise ValueError("multiple_of requires a divisor other than 0")

    def inspect(self, value: Any) -> Optional[Finding]:
        if _is_multiple(value, self.divisor):
            return None
        return IssueCode.NOT_MULTIPLE_OF, {"divisor": self.divisor}


@dataclass(frozen=True)
class MinLength(Validation):
    families = LENGTH_KINDS
    minimum: int

    def inspect(self, value: Any) -> Optional[Finding]:
        if len(value) >= self.minimum:
            return None
        return IssueCode.TOO_SMALL, {"origin": _origin(value), "minimum": self.minimum, "inclusive": True}


@dataclass(frozen=True)
class MaxLength(Validation):
    families = LENGTH_KINDS
    maximum: int

    def inspect(self, value: Any) -> Optional[Finding]:
        if len(value) <= self.maximum:
            return None
        return IssueCode.TOO_BIG, {"origin": _origin(value), "maximum": self.maximum, "inclusive": True}


@dataclass(frozen=True)
class ExactLength(Validation):
    families = LENGTH_KINDS
    length: int

    def inspect(self, value: Any) -> Optional[Finding]:
        actual = len(value)
        if actual < self.length:
            return IssueCode.TOO_SMALL, {"origin": _origin(value), "minimum": self.length, "exact": True}
        if actual > self.length:
            return IssueCode.TOO_BIG, {"origin": _origin(value), "maximum": self.length, "exact": True}
        return None


@dataclass(frozen=True)
class MinSize(Validation):
    families = SIZE_KINDS
    minimum: int

    def inspect(self, value: Any) -> Optional[Finding]:
        if _size_of(value) >= self.minimum:
            return None
        return IssueCode.TOO_SMALL, {"origin": _origin(value), "minimum": self.minimum, "inclusive": True}


@dataclass(frozen=True)
class MaxSize(Validation):
    families = SIZE_KINDS
    maximum: int

    def inspect(self, value: Any) -> Optional[Finding]:
        if _size_of(value) <= self.maximum:
            return None
        return IssueCode.TOO_BIG, {"origin": _origin(value), "maximum": self.maximum, "inclusive": True}


@dataclass(frozen=True)
class ExactSize(Validation):
    families = SIZE_KINDS
    size: int

    def inspect(self, value: Any) -> Optional[Finding]:
        actual = _size_of(value)
        if actual < self.size:
            return IssueCode.TOO_SMALL, {"origin": _origin(value), "minimum": self.size, "exact": True}
        if actual > self.size:
            return IssueCode.TOO_BIG, {"origin": _origin(value), "maximum": self.size, "exact": True}
        return None


@dataclass(frozen=True)
class Regex(Validation):
    """The pattern has to match somewhere in the string, anchor it if it has to match the whole string"""

    families = TEXT_KINDS
    pattern: re.Pattern
    format: str = "regex"

    def inspect(self, value: Any) -> Optional[Finding]:
        if self.pattern.search(value) is not None:
            return None
        return IssueCode.INVALID_FORMAT, {"format": self.format, "pattern": self.pattern.pattern}


@dataclass(frozen=True)
class StartsWith(Validation):
    families = TEXT_KINDS
    prefix: str

    def inspect(self, value: Any) -> Optional[Finding]:
        if value.startswith(self.prefix):
            return None
        return IssueCode.INVALID_FORMAT, {"format": "starts_with", "prefix": self.prefix}


@dataclass(frozen=True)
class EndsWith(Validation):
    families = TEXT_KINDS
    suffix: str

    def inspect(self, value: Any) -> Optional[Finding]:
        if value.endswith(self.suffix):
            return None
        return IssueCode.INVALID_FORMAT, {"format": "ends_with", "suffix": self.suffix}


@dataclass(frozen=True)
class Includes(Validation):
    families = TEXT_KINDS
    substring: str
    position: int = 0

    def inspect(self, value: Any) -> Optional[Finding]:
        if value.find(self.substring, self.position) != -1:
            return None
        return IssueCode.INVALID_FORMAT, {"format": "includes", "includes": self.substring}


@dataclass(frozen=True)
class Lowercase(Validation):
    families = TEXT_KINDS

    def inspect(self, value: Any) -> Optional[Finding]:
        if value == value.lower():
            return None
        return IssueCode.INVALID_FORMAT, {"format": "lowercase"}


@dataclass(frozen=True)
class Uppercase(Validation):
    families = TEXT_KINDS

    def inspect(self, value: Any) -> Optional[Finding]:
        if value == value.upper():
            return None
        return IssueCode.INVALID_FORMAT, {"format": "uppercase"}


@dataclass(frozen=True)
class Mime(Validation):
    """Accepts exact MIME types like `image/png` and wildcards like `image/*`"""

    families = FILE_KINDS
    mime_types: tuple[str, ...]

    def inspect(self, value: Any) -> Optional[Finding]:
        for mime_type in self.mime_types:
            if mime_type == value.mime_type:
                return None
            if mime_type.endswith("/*") and value.mime_type.startswith(mime_type[:-1]):
                return None
        return IssueCode.INVALID_FORMAT, {"format": "mime", "mime": self.mime_types, "received": value.mime_type}


@dataclass(frozen=True)
class PropertyCheck(CheckEntry):
    """
    Parses the property `key` of the value (item access for mappings, attribute access otherwise) with `schema`.
    Issues are reported at the path extended by `key`.
    """

    key: PathKey
    schema: "SchemaNode"

    def extract(self, value: Any) -> Any:
        """Returns the property value; `UNDEFINED` if it doesn't exist"""
        if isinstance(value, dict):
            return value.get(self.key, UNDEFINED)
        if isinstance(self.key, str):
            return getattr(value, self.key, UNDEFINED)
        try:
            return value[self.key]
        except (IndexError, KeyError, TypeError):
            return UNDEFINED


@dataclass(frozen=True)
class Refinement(CheckEntry):
    """
    Calls `predicate` with the value. A falsy return value raises a `custom` issue. If `abort` is set, a failing
    refinement skips the remaining checks of the schema.
    """

    predicate: Predicate
    asynchronous: bool = False
    abort: bool = False
    path: Path = ()
    params: frozendict = field(default_factory=frozendict)

    @property
    def is_async(self) -> bool:
        return self.asynchronous


@dataclass(frozen=True)
class CustomCheck(CheckEntry):
    """
    Calls `function` with the value and a `CheckContext`. The function may report any number of issues and may abort
    the remaining checks of the schema.
    """

    function: SuperRefinement
    asynchronous: bool = False

    @property
    def is_async(self) -> bool:
        return self.asynchronous


class CheckContext:
    """
    Handed to the functions of `superrefine` checks.
    """

    def __init__(self, parse_context: "ParseContext", check: CheckEntry, value: Any):
        self._parse_context = parse_context
        self._check = check
        self.value = value

    @property
    def path(self) -> Path:
        """The path of the value being checked"""
        return self._parse_context.path

    def add_issue(
        self,
        message: Optional[CustomMessage] = None,
        code: IssueCode = IssueCode.CUSTOM,
        path: Path = (),
        **params: Any,
    ) -> None:
        """
        Reports an issue at the path of the value, optionally extended by `path`.
        """
        self._parse_context.report(
            code,
            params,
            value=self.value,
            message=message if message is not None else self._check.message,
            path_suffix=path,
        )

    def abort(self) -> None:
        """Skips the remaining checks of the current schema. Sibling schemas are not affected."""
        self._parse_context.aborted = True


@dataclass(frozen=True)
class Transform(CheckEntry):
    """
    A check which rewrites the value. Transforms are total functions and never report issues.
    """

    def apply(self, value: Any) -> Any:
        """Returns the new value"""
        raise NotImplementedError


@dataclass(frozen=True)
class Trim(Transform):
    families = TEXT_KINDS

    def apply(self, value: Any) -> Any:
        return value.strip()


@dataclass(frozen=True)
class ToLowerCase(Transform):
    families = TEXT_KINDS

    def apply(self, value: Any) -> Any:
        return value.lower()


@dataclass(frozen=True)
class ToUpperCase(Transform):
    families = TEXT_KINDS

    def apply(self, value: Any) -> Any:
        return value.upper()


@dataclass(frozen=True)
class Normalize(Transform):
    families = TEXT_KINDS
    form: str = "NFC"

    def __post_init__(self):
        if self.form not in ("NFC", "NFD", "NFKC", "NFKD"):
            raise ValueError(f"Unknown unicode normalization form '{self.form}'")

    def apply(self, value: Any) -> Any:
        return unicodedata.normalize(self.form, value)  # type:ignore[arg-type]


@dataclass(frozen=True)
class Overwrite(Transform):
    """Replaces the value by `function(value)`. The function must not fail and must not change the type."""

    function: Callable[[Any], Any]

    def apply(self, value: Any) -> Any:
        return self.function(value)


def _is_coroutine_function(function: Callable, asynchronous: Optional[bool]) -> bool:
    if asynchronous is not None:
        return asynchronous
    return inspect.iscoroutinefunction(function)


def lt(maximum: Any, message: Optional[CustomMessage] = None) -> LessThan:
    """value < maximum"""
    return LessThan(maximum, inclusive=False, message=message)


def lte(maximum: Any, message: Optional[CustomMessage] = None) -> LessThan:
    """value <= maximum"""
    return LessThan(maximum, inclusive=True, message=message)


def gt(minimum: Any, message: Optional[CustomMessage] = None) -> GreaterThan:
    """value > minimum"""
    return GreaterThan(minimum, inclusive=False, message=message)


def gte(minimum: Any, message: Optional[CustomMessage] = None) -> GreaterThan:
    """value >= minimum"""
    return GreaterThan(minimum, inclusive=True, message=message)


def positive(message: Optional[CustomMessage] = None) -> GreaterThan:
    return gt(0, message)


def nonnegative(message: Optional[CustomMessage] = None) -> GreaterThan:
    return gte(0, message)


def negative(message: Optional[CustomMessage] = None) -> LessThan:
    return lt(0, message)


def nonpositive(message: Optional[CustomMessage] = None) -> LessThan:
    return lte(0, message)


def multiple_of(divisor: int | float, message: Optional[CustomMessage] = None) -> MultipleOf:
    return MultipleOf(divisor, message=message)


def min_length(minimum: int, message: Optional[CustomMessage] = None) -> MinLength:
    return MinLength(minimum, message=message)


def max_length(maximum: int, message: Optional[CustomMessage] = None) -> MaxLength:
    return MaxLength(maximum, message=message)


def length(exact: int, message: Optional[CustomMessage] = None) -> ExactLength:
    return ExactLength(exact, message=message)


def min_size(minimum: int, message: Optional[CustomMessage] = None) -> MinSize:
    return MinSize(minimum, message=message)


def max_size(maximum: int, message: Optional[CustomMessage] = None) -> MaxSize:
    return MaxSize(maximum, message=message)


def size(exact: int, message: Optional[CustomMessage] = None) -> ExactSize:
    return ExactSize(exact, message=message)


def regex(pattern: str | re.Pattern, message: Optional[CustomMessage] = None) -> Regex:
    """
    The value has to match `pattern` (`re.search` semantics).
    """
    if isinstance(pattern, str):
        pattern = re.compile(pattern)
    return Regex(pattern, message=message)


def string_format(format_name: str, message: Optional[CustomMessage] = None) -> Regex:
    """
    Checks one of the predefined formats from `FORMAT_PATTERNS`.
    """
    if format_name not in FORMAT_PATTERNS:
        raise ValueError(f"Unknown string format '{format_name}'. Known formats: {', '.join(FORMAT_PATTERNS)}")
    return Regex(FORMAT_PATTERNS[format_name], format=format_name, message=message)


def email(message: Optional[CustomMessage] = None) -> Regex:
    return string_format("email", message)


def uuid(message: Optional[CustomMessage] = None) -> Regex:
    return string_format("uuid", message)


def url(message: Optional[CustomMessage] = None) -> Regex:
    return string_format("url", message)


def starts_with(prefix: str, message: Optional[CustomMessage] = None) -> StartsWith:
    return StartsWith(prefix, message=message)


def ends_with(suffix: str, message: Optional[CustomMessage] = None) -> EndsWith:
    return EndsWith(suffix, message=message)


def includes(substring: str, position: int = 0, message: Optional[CustomMessage] = None) -> Includes:
    return Includes(substring, position, message=message)


def lowercase(message: Optional[CustomMessage] = None) -> Lowercase:
    return Lowercase(message=message)


def uppercase(message: Optional[CustomMessage] = None) -> Uppercase:
    return Uppercase(message=message)


def mime(*mime_types: str, message: Optional[CustomMessage] = None) -> Mime:
    if len(mime_types) == 0:
        raise ValueError("mime requires at least one MIME type")
    return Mime(tuple(mime_types), message=message)


def property_(key: PathKey, schema: "SchemaNode", message: Optional[CustomMessage] = None) -> PropertyCheck:
    """`message` replaces the messages of all issues raised while parsing the property"""
    return PropertyCheck(key, schema, message=message)


def refine(
    predicate: Predicate,
    message: Optional[CustomMessage] = None,
    *,
    abort: bool = False,
    path: Path = (),
    params: Optional[dict[str, Any]] = None,
    asynchronous: Optional[bool] = None,
) -> Refinement:
    """
    Creates a refinement from a predicate. Coroutine functions are detected automatically; pass `asynchronous=True`
    if `predicate` is a plain function returning an awaitable.
    """
    return Refinement(
        predicate,
        asynchronous=_is_coroutine_function(predicate, asynchronous),
        abort=abort,
        path=tuple(path),
        params=frozendict(params or {}),
        message=message,
    )


def superrefine(function: SuperRefinement, *, asynchronous: Optional[bool] = None) -> CustomCheck:
    return CustomCheck(function, asynchronous=_is_coroutine_function(function, asynchronous))


def trim() -> Trim:
    return Trim()


def to_lower_case() -> ToLowerCase:
    return ToLowerCase()


def to_upper_case() -> ToUpperCase:
    return ToUpperCase()


def normalize(form: str = "NFC") -> Normalize:
    return Normalize(form)


def overwrite(function: Callable[[Any], Any]) -> Overwrite:
    return Overwrite(function)
