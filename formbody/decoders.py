"""
Query decoders turn a urlencoded body into a mapping.

Two strategies exist. The *extended* decoder understands bracket key paths
and builds nested dicts and lists, the *simple* decoder only produces flat
`str` or `list[str]` values. Both share the same safety net: the number of
`&` separators is counted first and the body is rejected with a 413 as soon
as it reaches `parameter_limit`, before any parsing happens.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from formbody._internal._module_loading import import_string
from formbody._internal._parsers import parameter_count
from formbody.enums import ParserStrategy
from formbody.exceptions import HTTPException, ImproperlyConfigured, TooManyParameters
from formbody.logging import logger
from formbody.status import HTTP_400_BAD_REQUEST
from formbody.types import DecodedBody

__all__ = [
    "DecodeResult",
    "QueryDecoder",
    "build_decoder",
    "extended_decoder",
    "get_parser",
    "parameter_count",
    "simple_decoder",
    "validate_parameter_limit",
]

PARSER_PATHS: dict[str, str] = {
    ParserStrategy.QS: "formbody._internal._qs.parse",
    ParserStrategy.QUERYSTRING: "formbody._internal._parsers.parse_pairs",
}

# Loaded parsers, by strategy name. Written at most once per name, an
# import race only recomputes the same value.
_parsers: dict[str, Callable[..., Any]] = {}


class DecoderConfig(Protocol):
    extended: bool
    parameter_limit: int | float
    allow_dots: bool


@dataclass(frozen=True)
class DecodeResult:
    """
    The outcome of a decode attempt: either `value` or `error` is set.
    """

    value: DecodedBody | None = None
    error: HTTPException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: DecodedBody) -> DecodeResult:
        return cls(value=value)

    @classmethod
    def failure(cls, error: HTTPException) -> DecodeResult:
        return cls(error=error)


QueryDecoder = Callable[[str], DecodeResult]


def get_parser(name: str) -> Callable[..., Any]:
    """
    Get the parser for a strategy name, importing it on first use.
    """
    parser = _parsers.get(name)
    if parser is not None:
        return parser

    try:
        dotted_path = PARSER_PATHS[name]
    except KeyError:
        raise ImproperlyConfigured(detail=f"Unknown parser strategy '{name}'.") from None

    parser = _parsers[name] = import_string(dotted_path)
    return parser


def validate_parameter_limit(value: Any) -> int | float:
    """
    Validate `parameter_limit`, returning it truncated to an `int` when
    finite and as `math.inf` otherwise.

    Raises:
        ImproperlyConfigured: If the value is not a number of at least 1.
    """
    if isinstance(value, bool):
        raise ImproperlyConfigured(detail="option parameter_limit must be a positive number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ImproperlyConfigured(
            detail="option parameter_limit must be a positive number"
        ) from None

    if math.isnan(number) or number < 1:
        raise ImproperlyConfigured(detail="option parameter_limit must be a positive number")

    return int(number) if math.isfinite(number) else math.inf


def _parse_failure(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=HTTP_400_BAD_REQUEST,
        detail=str(exc) or exc.__class__.__name__,
        type="entity.parse.failed",
    )


def extended_decoder(parameter_limit: Any = 1000, allow_dots: bool = False) -> QueryDecoder:
    limit = validate_parameter_limit(parameter_limit)
    parse = get_parser(ParserStrategy.QS)

    def decode(body: str) -> DecodeResult:
        if not body:
            return DecodeResult.success({})

        count = parameter_count(body, limit)
        if count is None:
            logger.debug("too many parameters")
            return DecodeResult.failure(TooManyParameters())

        logger.debug("parse extended urlencoding")
        try:
            value = parse(
                body,
                allow_prototypes=True,
                array_limit=max(100, count),
                depth=math.inf,
                parameter_limit=limit,
                allow_dots=allow_dots,
            )
        except RecursionError as exc:
            return DecodeResult.failure(_parse_failure(exc))
        return DecodeResult.success(value)

    return decode


def simple_decoder(parameter_limit: Any = 1000) -> QueryDecoder:
    limit = validate_parameter_limit(parameter_limit)
    parse = get_parser(ParserStrategy.QUERYSTRING)

    def decode(body: str) -> DecodeResult:
        if not body:
            return DecodeResult.success({})

        if parameter_count(body, limit) is None:
            logger.debug("too many parameters")
            return DecodeResult.failure(TooManyParameters())

        logger.debug("parse urlencoding")
        pairs = parse(body, max_fields=limit)

        value: DecodedBody = {}
        for key, item in pairs:
            if key not in value:
                value[key] = item
            elif isinstance(value[key], list):
                value[key].append(item)
            else:
                value[key] = [value[key], item]
        return DecodeResult.success(value)

    return decode


def build_decoder(config: DecoderConfig) -> QueryDecoder:
    """
    Build the decoder selected by `config.extended`.

    Raises:
        ImproperlyConfigured: If `config.parameter_limit` is invalid.
    """
    if config.extended:
        return extended_decoder(config.parameter_limit, allow_dots=config.allow_dots)
    return simple_decoder(config.parameter_limit)
