"""
Contains the types used in the schema framework
"""
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine, Mapping, TypeAlias

if TYPE_CHECKING:
    from .checks import CheckContext
    from .errors import Issue, IssueCode


class _Undefined:
    """
    Marks the absence of a value, e.g. a key missing in an object input. It is distinct from `None`.
    """

    _instance: "_Undefined | None" = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNDEFINED"

    def __bool__(self):
        return False


UNDEFINED: Any = _Undefined()


class Kind(str, Enum):
    """
    The closed set of schema kinds. The parse executor handles every member.
    """

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    NONE = "none"
    DATE = "date"
    FILE = "file"
    ANY = "any"
    UNKNOWN = "unknown"
    NEVER = "never"
    LITERAL = "literal"
    ENUM = "enum"
    INSTANCE = "instance"
    OBJECT = "object"
    ARRAY = "array"
    TUPLE = "tuple"
    RECORD = "record"
    SET = "set"
    UNION = "union"
    OPTIONAL = "optional"
    NULLABLE = "nullable"
    DEFAULT = "default"
    CATCH = "catch"
    TRANSFORM = "transform"
    PIPE = "pipe"
    LAZY = "lazy"


@dataclass(frozen=True)
class File:
    """
    An in-memory file, e.g. an upload. Schemas of kind `file` accept instances of this class.
    """

    name: str
    content: bytes
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        """Size of the content in bytes"""
        return len(self.content)


PathKey: TypeAlias = str | int
Path: TypeAlias = tuple[PathKey, ...]

SyncPredicate: TypeAlias = Callable[[Any], bool]
AsyncPredicate: TypeAlias = Callable[[Any], Coroutine[Any, Any, bool]]
Predicate: TypeAlias = SyncPredicate | AsyncPredicate
SyncSuperRefinement: TypeAlias = Callable[[Any, "CheckContext"], None]
AsyncSuperRefinement: TypeAlias = Callable[[Any, "CheckContext"], Coroutine[Any, Any, None]]
SuperRefinement: TypeAlias = SyncSuperRefinement | AsyncSuperRefinement
TransformFunction: TypeAlias = Callable[[Any], Any | Awaitable[Any]]
MessageRenderer: TypeAlias = Callable[["Issue"], str]
LocaleTable: TypeAlias = Mapping["IssueCode", MessageRenderer]
CustomMessage: TypeAlias = str | MessageRenderer
