from __future__ import annotations

import warnings
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Annotated, Any, NamedTuple

from formbody._internal._parsers import parse_bytes, parse_content_type
from formbody._internal._typeis import type_is
from formbody.conf import settings
from formbody.decoders import QueryDecoder, build_decoder, validate_parameter_limit
from formbody.enums import ScopeType
from formbody.exceptions import ImproperlyConfigured, UnsupportedCharset
from formbody.logging import logger
from formbody.protocols.middleware import MiddlewareProtocol
from formbody.reader import Verify, read_body
from formbody.requests import Request
from formbody.types import ASGIApp, Doc, Empty, Receive, Scope, Send

TypeMatcher = str | Sequence[str] | Callable[[Request], bool]


@dataclass(frozen=True)
class UrlencodedConfig:
    """
    The options of one `UrlencodedMiddleware`, resolved and validated once.
    """

    limit: int | float
    inflate: bool
    type: TypeMatcher
    verify: Verify | None
    extended: bool
    parameter_limit: int | float
    allow_dots: bool = False

    @classmethod
    def build(
        cls,
        *,
        limit: int | float | str | None = None,
        inflate: bool | None = None,
        type: TypeMatcher | None = None,
        verify: Verify | None = None,
        extended: bool | type[Empty] = Empty,
        parameter_limit: Any = None,
        allow_dots: bool | None = None,
    ) -> UrlencodedConfig:
        """
        Resolve the options, falling back to `settings` for anything not given.

        Raises:
            ImproperlyConfigured: On an invalid `verify`, `limit` or
                `parameter_limit`.
        """
        if extended is Empty:
            warnings.warn(
                "undefined extended: provide extended option",
                DeprecationWarning,
                stacklevel=4,
            )
            extended = True

        if verify is not None and not callable(verify):
            raise ImproperlyConfigured(detail="option verify must be function")

        try:
            parsed_limit = parse_bytes(settings.limit if limit is None else limit)
        except (TypeError, ValueError) as exc:
            raise ImproperlyConfigured(detail=str(exc)) from exc

        return cls(
            limit=parsed_limit,
            inflate=settings.inflate if inflate is None else inflate is not False,
            type=(type or settings.type),
            verify=verify,
            extended=extended is not False,
            parameter_limit=validate_parameter_limit(
                settings.parameter_limit if parameter_limit is None else parameter_limit
            ),
            allow_dots=settings.allow_dots if allow_dots is None else allow_dots,
        )


class Eligibility(NamedTuple):
    proceed: bool
    reason: str | None = None


def type_checker(media_type: str | Sequence[str]) -> Callable[[Request], bool]:
    def check_type(request: Request) -> bool:
        return type_is(request.headers, media_type) is not None

    return check_type


def get_charset(request: Request) -> str | None:
    """
    The lower-cased charset declared by the request Content-Type, `None` when
    absent or when the header cannot be parsed.
    """
    try:
        _, options = parse_content_type(request.headers.get("content-type"))
    except Exception:  # noqa
        return None
    return options.get("charset", "").lower() or None


class UrlencodedMiddleware(MiddlewareProtocol):
    """
    Decodes `application/x-www-form-urlencoded` request bodies into
    `scope["body"]` before calling the next application.

    Requests that were already parsed, that carry no body or whose media
    type does not match are passed through untouched. Any other failure is
    raised as an `HTTPException` carrying a `status_code` and a `type`, and
    the next application is not called.

    **Example**

    ```python
    from formbody.middleware import DefineMiddleware, ExceptionMiddleware
    from formbody.middleware.base import build_middleware_stack
    from formbody.middleware.urlencoded import UrlencodedMiddleware

    app = build_middleware_stack(
        app,
        [
            DefineMiddleware(ExceptionMiddleware),
            DefineMiddleware(UrlencodedMiddleware, extended=False, limit="1mb"),
        ],
    )
    ```
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limit: Annotated[
            int | float | str | None,
            Doc(
                """
                Maximum decoded body size. A byte count or a string with a
                unit suffix, defaults to `settings.limit` (`"100kb"`).
                """
            ),
        ] = None,
        inflate: Annotated[
            bool | None,
            Doc(
                """
                Inflate `gzip` and `deflate` bodies. When `False`, encoded
                bodies are rejected with a 415.
                """
            ),
        ] = None,
        type: Annotated[
            TypeMatcher | None,
            Doc(
                """
                The media type(s) to act on, or a predicate receiving the
                `Request`.
                """
            ),
        ] = None,
        verify: Annotated[
            Verify | None,
            Doc(
                """
                Called as `verify(request, send, body, encoding)` with the raw
                body before decoding. Raising rejects the request with a 403.
                """
            ),
        ] = None,
        extended: Annotated[
            bool | type[Empty],
            Doc(
                """
                `True` for nested bracket keys, `False` for flat values only.
                Leaving it out warns and behaves as `True`.
                """
            ),
        ] = Empty,
        parameter_limit: Annotated[
            Any,
            Doc(
                """
                Maximum number of parameters, defaults to
                `settings.parameter_limit` (`1000`).
                """
            ),
        ] = None,
        allow_dots: Annotated[
            bool | None,
            Doc(
                """
                Let the extended decoder read `a.b` as `a[b]`.
                """
            ),
        ] = None,
    ) -> None:
        self.app = app
        self.__config = UrlencodedConfig.build(
            limit=limit,
            inflate=inflate,
            type=type,
            verify=verify,
            extended=extended,
            parameter_limit=parameter_limit,
            allow_dots=allow_dots,
        )
        self.__decode: QueryDecoder = build_decoder(self.__config)
        self.__should_parse: Callable[[Request], bool] = (
            self.__config.type
            if callable(self.__config.type)
            else type_checker(self.__config.type)
        )

    def should_proceed(self, request: Request) -> Eligibility:
        if request.is_body_parsed:
            return Eligibility(False, "body already parsed")

        if not request.has_body:
            return Eligibility(False, "skip empty body")

        logger.debug(f"content-type {request.headers.get('content-type')!r}")
        if not self.__should_parse(request):
            return Eligibility(False, "skip parsing")

        return Eligibility(True)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != ScopeType.HTTP:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        charset = get_charset(request) or "utf-8"

        if not scope.get("body"):
            scope["body"] = {}

        eligibility = self.should_proceed(request)
        if not eligibility.proceed:
            logger.debug(eligibility.reason)
            await self.app(scope, receive, send)
            return

        if charset != "utf-8":
            logger.debug("invalid charset")
            raise UnsupportedCharset(charset)

        config = self.__config
        body = await read_body(
            request,
            limit=config.limit,
            inflate=config.inflate,
            encoding=charset,
            verify=config.verify,
            send=send,
        )

        result = self.__decode(body)
        if not result.ok:
            raise result.error

        request.attach_body(result.value)
        await self.app(scope, request.replay_receive(), send)
