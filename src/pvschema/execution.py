"""
Contains the parse executor which walks a schema tree against an input value.

The walk is written once, as a tree of generators. Wherever a check or transform returns an awaitable, the generator
yields it and expects the awaited outcome to be sent back. The synchronous driver never gets an awaitable (it raises
a `SchemaConfigurationError` before), the asynchronous driver awaits it and resumes the walk. Children are visited
one after another in declaration order, so the issue order does not depend on the execution mode.
"""
import asyncio
import dataclasses
import inspect
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generator, Optional, TypeAlias

from frozendict import frozendict
from typeguard import CollectionCheckStrategy, TypeCheckError, check_type

from .analysis import ParseFailure, ParseResult, ParseSuccess
from .checks import CheckContext, CustomCheck, PropertyCheck, Refinement, Transform, Validation
from .errors import Issue, IssueCode, IssueCollector, ParseAbortedError, SchemaConfigurationError, format_path
from .locale import finalize_issues
from .types import UNDEFINED, CustomMessage, File, Kind, LocaleTable, Path, PathKey

if TYPE_CHECKING:
    from .schema import SchemaNode

_logger = logging.getLogger(__name__)

_Walk: TypeAlias = Generator[Awaitable[Any], Any, Any]


@dataclass(frozen=True)
class ParseConfig:
    """
    Options of a single parse call.
    `locale` renders the messages of this call instead of the installed locale table.
    `report_input` copies the offending input value into every issue.
    """

    locale: Optional[LocaleTable] = None
    report_input: bool = False


DEFAULT_CONFIG = ParseConfig()


class ParseContext:
    """
    The state of one parse call at one node: the path from the root, the shared issue collector, whether the
    remaining checks of the node were aborted and whether the call runs in asynchronous mode.
    """

    def __init__(
        self,
        collector: IssueCollector,
        path: Path = (),
        is_async: bool = False,
        config: ParseConfig = DEFAULT_CONFIG,
    ):
        self.collector = collector
        self.path = path
        self.is_async = is_async
        self.config = config
        self.aborted = False

    def child(self, key: PathKey) -> "ParseContext":
        """The context of a child value"""
        return ParseContext(self.collector, self.path + (key,), self.is_async, self.config)

    def enter(self) -> "ParseContext":
        """A context for the checks of a node, at the same path and with its own abort flag"""
        return ParseContext(self.collector, self.path, self.is_async, self.config)

    def fork(self) -> "ParseContext":
        """A context at the same path collecting into a fresh collector, e.g. to try a union option"""
        return ParseContext(IssueCollector(), self.path, self.is_async, self.config)

    def report(
        self,
        code: IssueCode,
        params: Mapping[str, Any],
        value: Any = UNDEFINED,
        message: Optional[CustomMessage] = None,
        path_suffix: Path = (),
    ) -> None:
        """Creates an issue at the current path (optionally extended by `path_suffix`) and collects it"""
        issue = Issue(
            code=code,
            path=self.path + tuple(path_suffix),
            params=frozendict(params),
            input=value if self.config.report_input else UNDEFINED,
        )
        if message is not None:
            issue = dataclasses.replace(issue, message=message(issue) if callable(message) else message)
        self.collector.add(issue)


def _received(value: Any) -> str:
    """Describes the runtime type of a value for `invalid_type` issues"""
    # pylint: disable=too-many-return-statements
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "none"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, float) and math.isnan(value):
        return "nan"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, date):
        return "date"
    if isinstance(value, File):
        return "file"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, (set, frozenset)):
        return "set"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    # ints of any size are finite, math.isfinite would overflow converting them to float
    return isinstance(value, int) or (isinstance(value, float) and math.isfinite(value))


_TYPE_TESTS: dict[Kind, Callable[[Any], bool]] = {
    Kind.STRING: lambda value: isinstance(value, str),
    Kind.NUMBER: _is_number,
    Kind.INTEGER: lambda value: isinstance(value, int) and not isinstance(value, bool),
    Kind.BOOLEAN: lambda value: isinstance(value, bool),
    Kind.NONE: lambda value: value is None,
    Kind.DATE: lambda value: isinstance(value, date),
    Kind.FILE: lambda value: isinstance(value, File),
    Kind.ANY: lambda value: True,
    Kind.UNKNOWN: lambda value: True,
    Kind.NEVER: lambda value: False,
}


def _discard(awaitable: Any) -> None:
    """Closes coroutines which will never be awaited to prevent 'never awaited' warnings"""
    if inspect.iscoroutine(awaitable):
        awaitable.close()


def _sync_misuse(what: str, ctx: ParseContext) -> SchemaConfigurationError:
    location = format_path(ctx.path) or "<root>"
    return SchemaConfigurationError(
        f"{what} at {location} is asynchronous but the schema is parsed synchronously. "
        "Use parse_async or safe_parse_async instead."
    )


def _call_user_function(what: str, declared_async: bool, function: Callable, args: tuple, ctx: ParseContext) -> _Walk:
    """
    Calls a user supplied function. Awaitable outcomes suspend the walk in asynchronous mode and are a configuration
    error in synchronous mode.
    """
    if declared_async and not ctx.is_async:
        raise _sync_misuse(what, ctx)
    outcome = function(*args)
    if inspect.isawaitable(outcome):
        if not ctx.is_async:
            _discard(outcome)
            raise _sync_misuse(what, ctx)
        outcome = yield outcome
    return outcome


def _parse_property(check: PropertyCheck, value: Any, ctx: ParseContext) -> _Walk:
    """
    Parses one property of `value`. A custom message of the check replaces the messages of all issues the property
    schema raises.
    """
    property_ctx = ctx.child(check.key)
    if check.message is None:
        yield from _parse_node(check.schema, check.extract(value), property_ctx)
        return
    trial = property_ctx.fork()
    yield from _parse_node(check.schema, check.extract(value), trial)
    for issue in trial.collector:
        message = check.message(issue) if callable(check.message) else check.message
        ctx.collector.add(dataclasses.replace(issue, message=message))


def _run_checks(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    """
    Runs the checks of `node` in declaration order against an already kind-validated value. Transforms replace the
    value, all other checks leave it untouched and only collect issues.
    """
    ctx = ctx.enter()
    for check in node.checks:
        if ctx.aborted:
            break
        if isinstance(check, Transform):
            value = check.apply(value)
        elif isinstance(check, Validation):
            finding = check.inspect(value)
            if finding is not None:
                code, params = finding
                ctx.report(code, params, value=value, message=check.message)
        elif isinstance(check, PropertyCheck):
            yield from _parse_property(check, value, ctx)
        elif isinstance(check, Refinement):
            passed = yield from _call_user_function(check.name, check.is_async, check.predicate, (value,), ctx)
            if not passed:
                ctx.report(IssueCode.CUSTOM, check.params, value=value, message=check.message, path_suffix=check.path)
                if check.abort:
                    ctx.aborted = True
        elif isinstance(check, CustomCheck):
            check_context = CheckContext(ctx, check, value)
            yield from _call_user_function(check.name, check.is_async, check.function, (value, check_context), ctx)
        else:
            raise SchemaConfigurationError(f"Unsupported check {check!r}")
    return value


def _report_invalid_type(node: "SchemaNode", value: Any, ctx: ParseContext, expected: Optional[str] = None) -> None:
    ctx.report(
        IssueCode.INVALID_TYPE,
        {"expected": expected if expected is not None else node.kind.value, "received": _received(value)},
        value=value,
    )


def _parse_scalar(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if not _TYPE_TESTS[node.kind](value):
        _report_invalid_type(node, value, ctx)
        return value
    return (yield from _run_checks(node, value, ctx))


def _parse_literal(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    values = node.params["values"]
    # `True == 1` must not let 1 pass a literal True
    if not any(value == candidate and type(value) is type(candidate) for candidate in values):
        ctx.report(IssueCode.INVALID_VALUE, {"values": values}, value=value)
        return value
    return (yield from _run_checks(node, value, ctx))


def _parse_enum(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    enum_class: Optional[type[Enum]] = node.params["enum_class"]
    if enum_class is not None:
        member = None
        if isinstance(value, enum_class):
            member = value
        else:
            for candidate in enum_class:
                if candidate.value == value and type(candidate.value) is type(value):
                    member = candidate
                    break
        if member is None:
            ctx.report(IssueCode.INVALID_VALUE, {"values": tuple(m.value for m in enum_class)}, value=value)
            return value
        return (yield from _run_checks(node, member, ctx))
    values = node.params["values"]
    if not any(value == candidate and type(value) is type(candidate) for candidate in values):
        ctx.report(IssueCode.INVALID_VALUE, {"values": values}, value=value)
        return value
    return (yield from _run_checks(node, value, ctx))


def _parse_instance(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    annotation = node.params["annotation"]
    try:
        check_type(value, annotation, collection_check_strategy=CollectionCheckStrategy.ALL_ITEMS)
    except TypeCheckError:
        _report_invalid_type(node, value, ctx, expected=getattr(annotation, "__name__", repr(annotation)))
        return value
    return (yield from _run_checks(node, value, ctx))


def _parse_object(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if not isinstance(value, Mapping):
        _report_invalid_type(node, value, ctx)
        return value
    value = yield from _run_checks(node, value, ctx)
    shape: frozendict = node.params["shape"]
    output: dict[str, Any] = {}
    for key, field_schema in shape.items():
        field_output = yield from _parse_node(field_schema, value.get(key, UNDEFINED), ctx.child(key))
        if field_output is not UNDEFINED:
            output[key] = field_output
    unknown_keys = [key for key in value if key not in shape]
    if len(unknown_keys) > 0:
        policy = node.params["unknown_keys"]
        if policy == "passthrough":
            output.update((key, value[key]) for key in unknown_keys)
        elif policy == "strict":
            ctx.report(IssueCode.UNRECOGNIZED_KEYS, {"keys": tuple(unknown_keys)}, value=value)
    return output


def _parse_array(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if not isinstance(value, (list, tuple)):
        _report_invalid_type(node, value, ctx)
        return value
    value = yield from _run_checks(node, value, ctx)
    element: "SchemaNode" = node.params["element"]
    output = []
    for index, item in enumerate(value):
        output.append((yield from _parse_node(element, item, ctx.child(index))))
    return output


def _parse_tuple(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if not isinstance(value, (list, tuple)):
        _report_invalid_type(node, value, ctx)
        return value
    items: tuple["SchemaNode", ...] = node.params["items"]
    rest: Optional["SchemaNode"] = node.params["rest"]
    if len(value) < len(items):
        ctx.report(
            IssueCode.TOO_SMALL,
            {"origin": "array", "minimum": len(items), "inclusive": True, "exact": rest is None},
            value=value,
        )
        return value
    if rest is None and len(value) > len(items):
        ctx.report(
            IssueCode.TOO_BIG, {"origin": "array", "maximum": len(items), "inclusive": True, "exact": True}, value=value
        )
        return value
    value = yield from _run_checks(node, value, ctx)
    output = []
    for index, item in enumerate(value):
        item_schema = items[index] if index < len(items) else rest
        output.append((yield from _parse_node(item_schema, item, ctx.child(index))))
    return tuple(output)


def _parse_record(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if not isinstance(value, Mapping):
        _report_invalid_type(node, value, ctx)
        return value
    value = yield from _run_checks(node, value, ctx)
    key_schema: "SchemaNode" = node.params["key"]
    value_schema: "SchemaNode" = node.params["value"]
    output: dict[Any, Any] = {}
    for key, item in value.items():
        key_output = yield from _parse_node(key_schema, key, ctx.child(key))
        output[key_output] = yield from _parse_node(value_schema, item, ctx.child(key))
    return output


def _ordered_elements(value: Any) -> list[Any]:
    """
    Set elements in a reproducible order so that issue paths don't depend on hashing. Elements which can't be compared
    with each other are ordered by type name and repr.
    """
    try:
        return sorted(value)
    except TypeError:
        return sorted(value, key=lambda element: (type(element).__name__, repr(element)))


def _parse_set(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if not isinstance(value, (set, frozenset)):
        _report_invalid_type(node, value, ctx)
        return value
    value = yield from _run_checks(node, value, ctx)
    element: "SchemaNode" = node.params["element"]
    output = []
    for index, item in enumerate(_ordered_elements(value)):
        output.append((yield from _parse_node(element, item, ctx.child(index))))
    return frozenset(output) if isinstance(value, frozenset) else set(output)


def _parse_wrapped(node: "SchemaNode", inner: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    """
    Parses `value` with `inner` and runs the checks of the wrapping `node` on the output if `inner` succeeded.
    """
    mark = len(ctx.collector)
    output = yield from _parse_node(inner, value, ctx)
    if len(ctx.collector) > mark:
        return output
    return (yield from _run_checks(node, output, ctx))


def _parse_union(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    attempts: list[tuple[Issue, ...]] = []
    for option in node.params["options"]:
        trial = ctx.fork()
        output = yield from _parse_node(option, value, trial)
        if len(trial.collector) == 0:
            return (yield from _run_checks(node, output, ctx))
        attempts.append(trial.collector.issues)
    ctx.report(IssueCode.INVALID_UNION, {"errors": tuple(attempts)}, value=value)
    return value


def _parse_optional(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if value is UNDEFINED:
        return UNDEFINED
    return (yield from _parse_wrapped(node, node.params["inner"], value, ctx))


def _parse_nullable(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if value is None:
        return None
    return (yield from _parse_wrapped(node, node.params["inner"], value, ctx))


def _parse_default(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    if value is UNDEFINED:
        fallback = node.params["value"]
        return fallback() if callable(fallback) else fallback
    return (yield from _parse_wrapped(node, node.params["inner"], value, ctx))


def _parse_catch(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    trial = ctx.fork()
    output = yield from _parse_node(node.params["inner"], value, trial)
    if len(trial.collector) > 0:
        fallback = node.params["value"]
        return fallback(trial.collector.issues) if callable(fallback) else fallback
    return (yield from _run_checks(node, output, ctx))


def _parse_transform(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    mark = len(ctx.collector)
    output = yield from _parse_node(node.params["inner"], value, ctx)
    if len(ctx.collector) > mark:
        return output
    output = yield from _call_user_function(
        "transform", node.params["asynchronous"], node.params["function"], (output,), ctx
    )
    return (yield from _run_checks(node, output, ctx))


def _parse_pipe(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    mark = len(ctx.collector)
    output = yield from _parse_node(node.params["source"], value, ctx)
    if len(ctx.collector) > mark:
        return output
    return (yield from _parse_wrapped(node, node.params["target"], output, ctx))


def _parse_lazy(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    return (yield from _parse_wrapped(node, node.params["ref"].resolve(), value, ctx))


_KIND_HANDLERS: dict[Kind, Callable[["SchemaNode", Any, ParseContext], _Walk]] = {
    Kind.STRING: _parse_scalar,
    Kind.NUMBER: _parse_scalar,
    Kind.INTEGER: _parse_scalar,
    Kind.BOOLEAN: _parse_scalar,
    Kind.NONE: _parse_scalar,
    Kind.DATE: _parse_scalar,
    Kind.FILE: _parse_scalar,
    Kind.ANY: _parse_scalar,
    Kind.UNKNOWN: _parse_scalar,
    Kind.NEVER: _parse_scalar,
    Kind.LITERAL: _parse_literal,
    Kind.ENUM: _parse_enum,
    Kind.INSTANCE: _parse_instance,
    Kind.OBJECT: _parse_object,
    Kind.ARRAY: _parse_array,
    Kind.TUPLE: _parse_tuple,
    Kind.RECORD: _parse_record,
    Kind.SET: _parse_set,
    Kind.UNION: _parse_union,
    Kind.OPTIONAL: _parse_optional,
    Kind.NULLABLE: _parse_nullable,
    Kind.DEFAULT: _parse_default,
    Kind.CATCH: _parse_catch,
    Kind.TRANSFORM: _parse_transform,
    Kind.PIPE: _parse_pipe,
    Kind.LAZY: _parse_lazy,
}


def _parse_node(node: "SchemaNode", value: Any, ctx: ParseContext) -> _Walk:
    """Parses `value` with `node`. Returns the output value; issues end up in the collector of `ctx`."""
    return (yield from _KIND_HANDLERS[node.kind](node, value, ctx))


def _drive_sync(walk: _Walk) -> Any:
    try:
        awaitable = walk.send(None)
    except StopIteration as stop:
        return stop.value
    _discard(awaitable)
    walk.close()
    raise SchemaConfigurationError("The schema suspended during a synchronous parse. Use parse_async instead.")


async def _drive_async(walk: _Walk) -> Any:
    outcome: Any = None
    try:
        while True:
            try:
                awaitable = walk.send(outcome)
            except StopIteration as stop:
                return stop.value
            outcome = await awaitable
    finally:
        walk.close()


def _conclude(output: Any, collector: IssueCollector, config: ParseConfig) -> ParseResult:
    if len(collector) == 0:
        return ParseSuccess(output)
    return ParseFailure(finalize_issues(collector.issues, config.locale))


def safe_parse(schema: "SchemaNode", value: Any, config: Optional[ParseConfig] = None) -> ParseResult:
    """
    Parses `value` synchronously and returns the result. It never raises for invalid input, only for configuration
    errors (e.g. asynchronous checks) and exceptions raised by user functions.
    """
    config = config if config is not None else DEFAULT_CONFIG
    collector = IssueCollector()
    context = ParseContext(collector, is_async=False, config=config)
    output = _drive_sync(_parse_node(schema, value, context))
    return _conclude(output, collector, config)


def parse(schema: "SchemaNode", value: Any, config: Optional[ParseConfig] = None) -> Any:
    """
    Parses `value` synchronously and returns the output. Raises a `SchemaValidationError` carrying all issues if the
    input is invalid.
    """
    result = safe_parse(schema, value, config)
    if isinstance(result, ParseFailure):
        raise result.error
    return result.data


async def safe_parse_async(
    schema: "SchemaNode", value: Any, config: Optional[ParseConfig] = None, timeout: Optional[float] = None
) -> ParseResult:
    """
    The asynchronous counterpart of `safe_parse`. Asynchronous checks are awaited where they appear.
    If `timeout` (seconds) expires, a `ParseAbortedError` is raised and no result is produced.
    """
    config = config if config is not None else DEFAULT_CONFIG
    collector = IssueCollector()
    context = ParseContext(collector, is_async=True, config=config)
    try:
        output = await asyncio.wait_for(_drive_async(_parse_node(schema, value, context)), timeout)
    except asyncio.TimeoutError as error:
        _logger.debug("Aborted parse of %r after %s seconds", schema, timeout)
        raise ParseAbortedError(f"The parse did not finish within {timeout} seconds") from error
    return _conclude(output, collector, config)


async def parse_async(
    schema: "SchemaNode", value: Any, config: Optional[ParseConfig] = None, timeout: Optional[float] = None
) -> Any:
    """
    The asynchronous counterpart of `parse`. Raises `SchemaValidationError` for invalid input and
    `ParseAbortedError` if `timeout` expires.
    """
    result = await safe_parse_async(schema, value, config, timeout)
    if isinstance(result, ParseFailure):
        raise result.error
    return result.data
