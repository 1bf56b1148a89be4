"""
Contains the schema node, its definition and the builder functions.
Schema nodes are immutable. Every operation which "modifies" a schema returns a new node which shares the nested
schemas of the original one.
"""
import inspect
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Hashable, Iterable, Mapping, Optional, Protocol

from frozendict import frozendict

from . import checks as _checks
from . import execution
from .errors import SchemaConfigurationError
from .types import Kind, Predicate, SuperRefinement, TransformFunction

if TYPE_CHECKING:
    from .analysis import ParseResult
    from .checks import CheckEntry, CustomMessage
    from .execution import ParseConfig

_logger = logging.getLogger(__name__)

UNKNOWN_KEY_POLICIES = ("strip", "passthrough", "strict")


@dataclass(frozen=True)
class SchemaDef:
    """
    The complete definition of a schema node: its kind, the kind specific parameters, the checks in declaration
    order, an optional brand tag and an optional metadata handle.
    """

    kind: Kind
    params: frozendict = field(default_factory=frozendict)
    checks: tuple["CheckEntry", ...] = ()
    brand: Optional[Hashable] = None
    metadata: Any = None


class LazyRef:
    """
    A reference to a schema which is resolved on first use and cached afterwards. It allows self-referencing schemas.
    """

    def __init__(self, getter: Callable[[], "SchemaNode"]):
        self._getter = getter
        self._resolved: Optional["SchemaNode"] = None

    def resolve(self) -> "SchemaNode":
        """Returns the referenced schema"""
        if self._resolved is None:
            resolved = self._getter()
            if not isinstance(resolved, SchemaNode):
                raise SchemaConfigurationError(f"lazy getter returned {type(resolved).__name__} instead of a schema")
            _logger.debug("Resolved lazy schema to %r", resolved)
            self._resolved = resolved
        return self._resolved


class MetadataRegistry(Protocol):
    """
    Anything schemas can be registered at together with some metadata.
    """

    def add(self, schema: "SchemaNode", metadata: Any) -> Any:
        ...


@dataclass(frozen=True, eq=False, repr=False)
class SchemaNode:
    """
    An immutable schema. Two nodes are only equal if they are the same object.
    The methods are a thin chaining surface over the module level functions.
    """

    definition: SchemaDef

    @property
    def kind(self) -> Kind:
        """The kind of the schema"""
        return self.definition.kind

    @property
    def params(self) -> frozendict:
        """The kind specific parameters"""
        return self.definition.params

    @property
    def checks(self) -> tuple["CheckEntry", ...]:
        """The attached checks in declaration order"""
        return self.definition.checks

    @property
    def brand_tag(self) -> Optional[Hashable]:
        return self.definition.brand

    @property
    def metadata(self) -> Any:
        return self.definition.metadata

    def __repr__(self):
        return f"SchemaNode({self.kind.value}, checks={len(self.checks)})"

    def parse(self, value: Any, config: Optional["ParseConfig"] = None) -> Any:
        return execution.parse(self, value, config)

    def safe_parse(self, value: Any, config: Optional["ParseConfig"] = None) -> "ParseResult":
        return execution.safe_parse(self, value, config)

    async def parse_async(
        self, value: Any, config: Optional["ParseConfig"] = None, timeout: Optional[float] = None
    ) -> Any:
        return await execution.parse_async(self, value, config, timeout)

    async def safe_parse_async(
        self, value: Any, config: Optional["ParseConfig"] = None, timeout: Optional[float] = None
    ) -> "ParseResult":
        return await execution.safe_parse_async(self, value, config, timeout)

    def check(self, *entries: "CheckEntry") -> "SchemaNode":
        return check(self, *entries)

    def refine(self, predicate: Predicate, message: Optional["CustomMessage"] = None, **kwargs) -> "SchemaNode":
        return with_check(self, _checks.refine(predicate, message, **kwargs))

    def superrefine(self, function: SuperRefinement, **kwargs) -> "SchemaNode":
        return with_check(self, _checks.superrefine(function, **kwargs))

    def overwrite(self, function: Callable[[Any], Any]) -> "SchemaNode":
        return with_check(self, _checks.overwrite(function))

    def optional(self) -> "SchemaNode":
        return optional(self)

    def nullable(self) -> "SchemaNode":
        return nullable(self)

    def default(self, value: Any) -> "SchemaNode":
        return default(self, value)

    def catch(self, value: Any) -> "SchemaNode":
        return catch(self, value)

    def transform(self, function: TransformFunction) -> "SchemaNode":
        return transform(self, function)

    def pipe(self, target: "SchemaNode") -> "SchemaNode":
        return pipe(self, target)

    def brand(self, tag: Hashable) -> "SchemaNode":
        return brand(self, tag)

    def clone(self, definition: Optional[SchemaDef] = None) -> "SchemaNode":
        return clone(self, definition if definition is not None else self.definition)

    def register(self, registry: MetadataRegistry, metadata: Any) -> "SchemaNode":
        return register(self, registry, metadata)


def _node(kind: Kind, **params: Any) -> SchemaNode:
    return SchemaNode(SchemaDef(kind=kind, params=frozendict(params)))


def _require_schema(value: Any, what: str) -> SchemaNode:
    if not isinstance(value, SchemaNode):
        raise SchemaConfigurationError(f"{what} has to be a schema, got {type(value).__name__}")
    return value


def with_check(node: SchemaNode, check_entry: "CheckEntry") -> SchemaNode:
    """
    Returns a new schema with `check_entry` appended to the checks of `node`. Checks are never reordered or
    deduplicated. Raises `SchemaConfigurationError` if the check can't be applied to the kind of `node`.
    """
    if not isinstance(check_entry, _checks.CheckEntry):
        raise SchemaConfigurationError(f"{check_entry!r} is not a check")
    if not check_entry.accepts_kind(node.kind):
        raise SchemaConfigurationError(f"{check_entry.name} can't be applied to a schema of kind '{node.kind.value}'")
    return SchemaNode(replace(node.definition, checks=node.definition.checks + (check_entry,)))


def check(node: SchemaNode, *entries: "CheckEntry") -> SchemaNode:
    """Appends all `entries` in the given order"""
    for entry in entries:
        node = with_check(node, entry)
    return node


def clone(node: SchemaNode, definition: SchemaDef) -> SchemaNode:  # pylint: disable=unused-argument
    """
    Returns a new schema using `definition` verbatim. The definition doesn't need to match the kind of `node`; the
    caller is responsible for its consistency.
    """
    return SchemaNode(definition)


def brand(node: SchemaNode, tag: Hashable) -> SchemaNode:
    """
    Returns a copy of `node` tagged with `tag`. The tag is only meant for static typing and has no influence on
    parsing.
    """
    return SchemaNode(replace(node.definition, brand=tag))


def with_metadata(node: SchemaNode, handle: Any) -> SchemaNode:
    """Returns a copy of `node` holding the metadata `handle`"""
    return SchemaNode(replace(node.definition, metadata=handle))


def register(node: SchemaNode, registry: MetadataRegistry, metadata: Any) -> SchemaNode:
    """Adds `node` to `registry` and returns the (unchanged) node"""
    registry.add(node, metadata)
    return node


def string() -> SchemaNode:
    return _node(Kind.STRING)


def number() -> SchemaNode:
    """Finite ints and floats. Booleans are rejected."""
    return _node(Kind.NUMBER)


def integer() -> SchemaNode:
    return _node(Kind.INTEGER)


def boolean() -> SchemaNode:
    return _node(Kind.BOOLEAN)


def none() -> SchemaNode:
    return _node(Kind.NONE)


def date() -> SchemaNode:
    """`datetime.date` and `datetime.datetime` values"""
    return _node(Kind.DATE)


def file() -> SchemaNode:
    """`pvschema.File` values"""
    return _node(Kind.FILE)


def any_() -> SchemaNode:
    return _node(Kind.ANY)


def unknown() -> SchemaNode:
    return _node(Kind.UNKNOWN)


def never() -> SchemaNode:
    return _node(Kind.NEVER)


def literal(*values: Any) -> SchemaNode:
    """Accepts values equal to one of `values`"""
    if len(values) == 0:
        raise SchemaConfigurationError("literal requires at least one value")
    return _node(Kind.LITERAL, values=tuple(values))


def enum(values: Iterable[Any] | type[Enum]) -> SchemaNode:
    """
    Accepts one of `values`. If an `Enum` class is given, its members and their values are accepted; the output is
    always the member.
    """
    if isinstance(values, type) and issubclass(values, Enum):
        return _node(Kind.ENUM, values=tuple(values), enum_class=values)
    values = tuple(values)
    if len(values) == 0:
        raise SchemaConfigurationError("enum requires at least one value")
    return _node(Kind.ENUM, values=values, enum_class=None)


def instance(annotation: Any) -> SchemaNode:
    """
    Accepts everything matching the type annotation, e.g. `instance(Path)` or `instance(dict[str, int])`.
    """
    return _node(Kind.INSTANCE, annotation=annotation)


def object_(shape: Mapping[str, SchemaNode], unknown_keys: str = "strip") -> SchemaNode:
    """
    Accepts mappings. Every key of `shape` is parsed with its schema in declaration order.
    Unknown keys are dropped (`strip`), kept (`passthrough`) or reported (`strict`).
    """
    if unknown_keys not in UNKNOWN_KEY_POLICIES:
        raise SchemaConfigurationError(
            f"unknown_keys has to be one of {', '.join(UNKNOWN_KEY_POLICIES)}, got '{unknown_keys}'"
        )
    for key, value in shape.items():
        if not isinstance(key, str):
            raise SchemaConfigurationError(f"Object keys have to be strings, got {key!r}")
        _require_schema(value, f"Field '{key}'")
    return _node(Kind.OBJECT, shape=frozendict(shape), unknown_keys=unknown_keys)


def array(element: SchemaNode) -> SchemaNode:
    """Accepts lists and tuples; the output is a list"""
    return _node(Kind.ARRAY, element=_require_schema(element, "Array element"))


def tuple_(*items: SchemaNode, rest: Optional[SchemaNode] = None) -> SchemaNode:
    """Fixed length sequences. Additional elements are allowed if `rest` is given and parsed with it."""
    for index, item in enumerate(items):
        _require_schema(item, f"Tuple item {index}")
    if rest is not None:
        _require_schema(rest, "Tuple rest")
    return _node(Kind.TUPLE, items=tuple(items), rest=rest)


def record(key: SchemaNode, value: SchemaNode) -> SchemaNode:
    return _node(Kind.RECORD, key=_require_schema(key, "Record key"), value=_require_schema(value, "Record value"))


def set_(element: SchemaNode) -> SchemaNode:
    """
    Elements are parsed in sorted order (by type name and repr if they aren't comparable). Issue paths are indices
    into that order.
    """
    return _node(Kind.SET, element=_require_schema(element, "Set element"))


def union(*options: SchemaNode) -> SchemaNode:
    """The first option that accepts the input wins"""
    if len(options) == 0:
        raise SchemaConfigurationError("union requires at least one option")
    for index, option in enumerate(options):
        _require_schema(option, f"Union option {index}")
    return _node(Kind.UNION, options=tuple(options))


def optional(inner: SchemaNode) -> SchemaNode:
    """Additionally accepts `UNDEFINED`, i.e. a missing key"""
    return _node(Kind.OPTIONAL, inner=_require_schema(inner, "Optional inner"))


def nullable(inner: SchemaNode) -> SchemaNode:
    """Additionally accepts `None`"""
    return _node(Kind.NULLABLE, inner=_require_schema(inner, "Nullable inner"))


def default(inner: SchemaNode, value: Any) -> SchemaNode:
    """
    Replaces `UNDEFINED` by `value`. If `value` is callable, it is called for every substitution.
    """
    return _node(Kind.DEFAULT, inner=_require_schema(inner, "Default inner"), value=value)


def catch(inner: SchemaNode, value: Any) -> SchemaNode:
    """
    Returns `value` instead of failing if `inner` rejects the input. If `value` is callable, it is called with the
    discarded issues.
    """
    return _node(Kind.CATCH, inner=_require_schema(inner, "Catch inner"), value=value)


def transform(inner: SchemaNode, function: TransformFunction, *, asynchronous: Optional[bool] = None) -> SchemaNode:
    """
    Parses with `inner` and passes the output to `function`. The function is not called if `inner` failed.
    Coroutine functions require the asynchronous entry points.
    """
    if asynchronous is None:
        asynchronous = inspect.iscoroutinefunction(function)
    return _node(
        Kind.TRANSFORM, inner=_require_schema(inner, "Transform inner"), function=function, asynchronous=asynchronous
    )


def pipe(source: SchemaNode, target: SchemaNode) -> SchemaNode:
    """Parses with `source` and the output of `source` with `target`"""
    return _node(
        Kind.PIPE, source=_require_schema(source, "Pipe source"), target=_require_schema(target, "Pipe target")
    )


def lazy(getter: Callable[[], SchemaNode]) -> SchemaNode:
    """
    A schema which is defined by calling `getter` on first use. Use it for recursive schemas:
    ```
    category = object_({"name": string(), "children": array(lazy(lambda: category))})
    ```
    """
    return _node(Kind.LAZY, ref=LazyRef(getter))

