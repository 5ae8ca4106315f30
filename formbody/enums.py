from __future__ import annotations

from enum import IntEnum

from formbody.conf.enums import StrEnum


class ScopeType(StrEnum):
    HTTP = "http"
    WEBSOCKET = "websocket"
    LIFESPAN = "lifespan"


class Event(StrEnum):
    HTTP_REQUEST = "http.request"
    HTTP_DISCONNECT = "http.disconnect"


class MediaType(StrEnum):
    JSON = "application/json"
    URLENCODED = "application/x-www-form-urlencoded"


class ContentEncoding(StrEnum):
    IDENTITY = "identity"
    GZIP = "gzip"
    DEFLATE = "deflate"


class ParserStrategy(StrEnum):
    """
    Names of the key-value parsers the query decoders are built on.
    """

    QS = "qs"
    QUERYSTRING = "querystring"


class FormMessage(IntEnum):
    FIELD_START = 1
    FIELD_NAME = 2
    FIELD_DATA = 3
    FIELD_END = 4
    END = 5
