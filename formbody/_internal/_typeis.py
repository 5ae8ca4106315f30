from __future__ import annotations

import mimetypes
from collections.abc import Sequence

from formbody._internal._parsers import parse_content_type
from formbody.datastructures import Header
from formbody.enums import MediaType

# shorthands accepted wherever a media type is expected
_SHORTHANDS: dict[str, str] = {
    "urlencoded": MediaType.URLENCODED,
    "multipart": "multipart/*",
    "json": MediaType.JSON,
}


def has_body(headers: Header) -> bool:
    """
    A request has a body when it declares a transfer encoding or a numeric
    content length, ``0`` included.
    """
    if "transfer-encoding" in headers:
        return True
    content_length = headers.get("content-length")
    if content_length is None:
        return False
    try:
        int(content_length.strip())
    except ValueError:
        return False
    return True


def normalize_type(value: str) -> str | None:
    """
    Expand shorthands into a full media type pattern.

    ``urlencoded`` -> ``application/x-www-form-urlencoded``,
    ``+json`` -> ``*/*+json``, and a bare extension such as ``html`` is
    resolved through `mimetypes`.
    """
    value = value.strip().lower()
    if value in _SHORTHANDS:
        return _SHORTHANDS[value]
    if value.startswith("+"):
        return f"*/*{value}"
    if "/" in value:
        return value
    media_type, _ = mimetypes.guess_type(f"file.{value.lstrip('.')}", strict=False)
    return media_type


def mime_match(expected: str, actual: str) -> bool:
    """
    Match a concrete media type against a pattern supporting ``*`` for the
    type or subtype and ``*+suffix`` for structured syntax suffixes.
    """
    expected_parts = expected.split("/")
    actual_parts = actual.split("/")

    if len(expected_parts) != 2 or len(actual_parts) != 2:
        return False

    expected_type, expected_subtype = expected_parts
    actual_type, actual_subtype = actual_parts

    if expected_type != "*" and expected_type != actual_type:
        return False

    if expected_subtype.startswith("*+"):
        suffix = expected_subtype[1:]
        return len(actual_subtype) > len(suffix) and actual_subtype.endswith(suffix)

    return expected_subtype == "*" or expected_subtype == actual_subtype


def type_is(headers: Header, types: str | Sequence[str]) -> str | None:
    """
    Return the first pattern in ``types`` matched by the request
    Content-Type, or ``None`` when the request has no body, no usable
    Content-Type, or nothing matches.
    """
    if not has_body(headers):
        return None

    try:
        actual, _ = parse_content_type(headers.get("content-type"))
    except Exception:  # noqa
        return None

    if not actual or actual.count("/") != 1:
        return None

    if isinstance(types, str):
        types = [types]

    for candidate in types:
        expected = normalize_type(candidate)
        if expected is not None and mime_match(expected, actual):
            return candidate
    return None
