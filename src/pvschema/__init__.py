"""
This package enables you to describe the expected shape of arbitrary data as immutable schemas and to parse data
with them. A single parse reports every issue of the whole input, supports asynchronous checks and renders messages
through a replaceable locale table.
"""

from .analysis import ParseFailure, ParseResult, ParseSuccess
from .checks import (
    CheckContext,
    CheckEntry,
    email,
    ends_with,
    gt,
    gte,
    includes,
    length,
    lowercase,
    lt,
    lte,
    max_length,
    max_size,
    mime,
    min_length,
    min_size,
    multiple_of,
    negative,
    nonnegative,
    nonpositive,
    normalize,
    overwrite,
    positive,
    property_,
    refine,
    regex,
    size,
    starts_with,
    string_format,
    superrefine,
    to_lower_case,
    to_upper_case,
    trim,
    uppercase,
    url,
    uuid,
)
from .errors import (
    Issue,
    IssueCode,
    ParseAbortedError,
    PvSchemaError,
    SchemaConfigurationError,
    SchemaValidationError,
    Severity,
)
from .execution import ParseConfig, parse, parse_async, safe_parse, safe_parse_async
from .locale import FALLBACK_MESSAGE, configure_locale, get_locale
from .schema import (
    SchemaDef,
    SchemaNode,
    any_,
    array,
    boolean,
    brand,
    catch,
    check,
    clone,
    date,
    default,
    enum,
    file,
    instance,
    integer,
    lazy,
    literal,
    never,
    none,
    nullable,
    number,
    object_,
    optional,
    pipe,
    record,
    register,
    set_,
    string,
    transform,
    tuple_,
    union,
    unknown,
    with_check,
    with_metadata,
)
from .types import UNDEFINED, File, Kind
