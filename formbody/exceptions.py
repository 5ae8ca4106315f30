from __future__ import annotations

import http
from typing import Any

from formbody import status


class FormBodyException(Exception):
    def __init__(self, *args: Any, detail: str = ""):
        self.detail = detail
        super().__init__(*(str(arg) for arg in args if arg), self.detail)

    def __repr__(self) -> str:  # pragma: no cover
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return "".join(self.args).strip()


class ImproperlyConfigured(FormBodyException, TypeError):
    """
    Raised while building a middleware or decoder from invalid options.
    """


class HTTPException(FormBodyException):
    """
    A request-fatal error carrying an HTTP status code and a machine-readable
    ``type`` (for instance ``"charset.unsupported"``).

    Any keyword argument not consumed by the constructor is kept in ``extra``
    and is also exposed as an attribute, so handlers can read contextual
    fields such as ``exc.charset`` or ``exc.limit``.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    type: str | None = None

    def __init__(
        self,
        *args: Any,
        status_code: int | None = None,
        detail: str | None = None,
        headers: dict[str, str] | None = None,
        type: str | None = None,
        **extra: Any,
    ) -> None:
        detail = detail or getattr(self, "detail", None)
        status_code = status_code or getattr(self, "status_code", None)
        if not detail:
            detail = args[0] if args else http.HTTPStatus(status_code or self.status_code).phrase
            args = args[1:]
        self.status_code = status_code
        self.detail = detail
        self.headers = headers
        self.type = type or self.type
        self.args = (f"{self.status_code}: {self.detail}", *args)
        self.extra = extra
        for key, value in extra.items():
            setattr(self, key, value)

    def __str__(self) -> str:
        return f"{self.status_code}: {self.detail}"

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        return (
            f"{class_name}(status_code={self.status_code!r}, detail={self.detail!r}, "
            f"type={self.type!r})"
        )


class UnsupportedCharset(HTTPException):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    type = "charset.unsupported"

    def __init__(self, charset: str, **extra: Any) -> None:
        super().__init__(detail=f'unsupported charset "{charset.upper()}"', charset=charset, **extra)


class TooManyParameters(HTTPException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    type = "parameters.too.many"
    detail = "too many parameters"


class PayloadTooLarge(HTTPException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    type = "entity.too.large"
    detail = "request entity too large"


class UnsupportedContentEncoding(HTTPException):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    type = "encoding.unsupported"


class MalformedContentEncoding(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    type = "entity.parse.failed"


class RequestSizeMismatch(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    type = "request.size.invalid"
    detail = "request size did not match content length"


class RequestAborted(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    type = "request.aborted"
    detail = "request aborted"


class VerificationFailed(HTTPException):
    status_code = status.HTTP_403_FORBIDDEN
    type = "entity.verify.failed"
