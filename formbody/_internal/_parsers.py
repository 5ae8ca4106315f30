from __future__ import annotations

import math
import re
from typing import Any
from urllib.parse import unquote_plus

import python_multipart as multipart
from python_multipart.multipart import parse_options_header

from formbody.enums import FormMessage

# binary multiples, the way `bytes` style limits are usually written: "100kb", "1.5mb"
_BYTE_UNITS: dict[str, int] = {
    "b": 1,
    "kb": 1 << 10,
    "mb": 1 << 20,
    "gb": 1 << 30,
    "tb": 1 << 40,
    "pb": 1 << 50,
}
_BYTES_RE = re.compile(r"^\s*((?:-|\+)?\d+(?:\.\d+)?)\s*(kb|mb|gb|tb|pb|b)?\s*$", re.IGNORECASE)


def parse_bytes(value: int | float | str) -> int:
    """
    Parse a size limit into a number of bytes.

    Examples:
        >>> parse_bytes("100kb")
        102400
        >>> parse_bytes(2048)
        2048

    Args:
        value: A byte count or a string with an optional unit suffix.

    Raises:
        ValueError: When the value cannot be interpreted as a size.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid size limit: {value!r}")
    if isinstance(value, (int, float)):
        if math.isnan(value):
            raise ValueError(f"Invalid size limit: {value!r}")
        return int(value) if math.isfinite(value) else value  # type: ignore[return-value]

    match = _BYTES_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid size limit: {value!r}")

    number, unit = match.groups()
    return math.floor(float(number) * _BYTE_UNITS[(unit or "b").lower()])


def parse_content_type(header: str | bytes | None) -> tuple[str, dict[str, str]]:
    """
    Split a Content-Type header into the lower-cased media type and its
    parameters, decoded as latin-1.
    """
    media_type, options = parse_options_header(header)
    return (
        media_type.decode("latin-1").lower(),
        {key.decode("latin-1").lower(): value.decode("latin-1") for key, value in options.items()},
    )


def parameter_count(body: str, limit: int | float) -> int | None:
    """
    Count the number of parameters, stopping once limit reached.

    The count is the number of ``&`` separators in ``body``. ``None`` is
    returned as soon as that count reaches ``limit``, without scanning the
    rest of the body.
    """
    count = 0
    index = body.find("&")

    while index != -1:
        count += 1
        if count == limit:
            return None
        index = body.find("&", index + 1)

    return count


class QuerystringTokenizer:
    """
    Splits an urlencoded body into unescaped name/value pairs using
    `python_multipart.QuerystringParser`.

    Pairs are separated by ``&`` (or ``;``), empty pairs are skipped and a
    name without ``=`` gets an empty value. Collection stops once
    `max_fields` pairs were read.
    """

    def __init__(self, max_fields: int | float = math.inf) -> None:
        self.max_fields = max_fields
        self.messages: list[tuple[FormMessage, bytes]] = []

    def on_field_start(self) -> None:
        self.messages.append((FormMessage.FIELD_START, b""))

    def on_field_name(self, data: bytes, start: int, end: int) -> None:
        self.messages.append((FormMessage.FIELD_NAME, data[start:end]))

    def on_field_data(self, data: bytes, start: int, end: int) -> None:
        self.messages.append((FormMessage.FIELD_DATA, data[start:end]))

    def on_field_end(self) -> None:
        self.messages.append((FormMessage.FIELD_END, b""))

    def on_end(self) -> None:
        self.messages.append((FormMessage.END, b""))

    def parse(self, body: str | bytes) -> list[tuple[str, str]]:
        callbacks: Any = {
            "on_field_start": self.on_field_start,
            "on_field_name": self.on_field_name,
            "on_field_data": self.on_field_data,
            "on_field_end": self.on_field_end,
            "on_end": self.on_end,
        }

        parser = multipart.QuerystringParser(callbacks)
        parser.write(body.encode("utf-8") if isinstance(body, str) else body)
        parser.finalize()

        field_name = b""
        field_value = b""
        pending = False
        items: list[tuple[str, str]] = []

        for message_type, message_bytes in self.messages:
            if len(items) >= self.max_fields:
                break
            if message_type == FormMessage.FIELD_START:
                field_name = b""
                field_value = b""
                pending = True
            elif message_type == FormMessage.FIELD_NAME:
                field_name += message_bytes
            elif message_type == FormMessage.FIELD_DATA:
                field_value += message_bytes
            elif pending:
                # a trailing name without "=" ends with the body, not with a field end
                items.append((_unquote(field_name), _unquote(field_value)))
                pending = False

        self.messages.clear()
        return items


def _unquote(value: bytes) -> str:
    return unquote_plus(value.decode("utf-8", errors="replace"), errors="replace")


def parse_pairs(body: str | bytes, max_fields: int | float = math.inf) -> list[tuple[str, str]]:
    """
    Tokenize an urlencoded body into at most `max_fields` name/value pairs.

    Examples:
        >>> parse_pairs("a=1&b=&c")
        [('a', '1'), ('b', ''), ('c', '')]
    """
    return QuerystringTokenizer(max_fields).parse(body)
