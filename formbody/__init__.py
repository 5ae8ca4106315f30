__version__ = "0.1.0"

from formbody.decoders import DecodeResult, build_decoder, parameter_count
from formbody.exceptions import (
    HTTPException,
    ImproperlyConfigured,
    PayloadTooLarge,
    TooManyParameters,
    UnsupportedCharset,
)
from formbody.middleware.urlencoded import UrlencodedConfig, UrlencodedMiddleware
from formbody.requests import Request

__all__ = [
    "DecodeResult",
    "HTTPException",
    "ImproperlyConfigured",
    "PayloadTooLarge",
    "Request",
    "TooManyParameters",
    "UnsupportedCharset",
    "UrlencodedConfig",
    "UrlencodedMiddleware",
    "build_decoder",
    "parameter_count",
]
