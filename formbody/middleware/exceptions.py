from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from formbody import status
from formbody.compat import is_async_callable
from formbody.concurrency import run_in_threadpool
from formbody.enums import ScopeType
from formbody.exceptions import HTTPException
from formbody.logging import logger
from formbody.protocols.middleware import MiddlewareProtocol
from formbody.requests import Request
from formbody.responses import JSONResponse, Response
from formbody.types import ASGIApp, Message, Receive, Scope, Send

Handler = Callable[[Request, Exception], ASGIApp | Awaitable[ASGIApp]]


class ExceptionMiddleware(MiddlewareProtocol):
    """
    Translates `HTTPException` raised further down the chain into a JSON
    response of the form `{"detail": ..., "type": ...}`.

    Handlers can be registered per exception class or per status code, a
    status code handler taking precedence. Exceptions without a handler
    propagate.

    Args:
        app (ASGIApp): The ASGI application.
        handlers (Optional[Mapping]): Custom exception handlers.

    Usage:
    ```python
    app = ExceptionMiddleware(app, handlers={413: too_large_handler})
    ```
    """

    def __init__(
        self,
        app: ASGIApp,
        handlers: Mapping[Any, Handler] | None = None,
    ) -> None:
        self.app = app
        self._status_handlers: dict[int, Handler] = {}
        self._exception_handlers: dict[type[Exception], Handler] = {
            HTTPException: self.http_exception,
        }
        if handlers is not None:
            for key, value in handlers.items():
                self.add_exception_handler(key, value)

    def add_exception_handler(
        self,
        exception_or_status: type[Exception] | int,
        handler: Handler,
    ) -> None:
        """
        Add a custom exception handler.

        Args:
            exception_or_status (Union[Type[Exception], int]): Exception class or status code.
            handler (Callable[[Request, Exception], ASGIApp]): Exception handler function.
        """
        if isinstance(exception_or_status, int):
            self._status_handlers[exception_or_status] = handler
        else:
            assert issubclass(exception_or_status, Exception)
            self._exception_handlers[exception_or_status] = handler

    def lookup_handler(self, exc: Exception) -> Handler | None:
        if isinstance(exc, HTTPException) and exc.status_code in self._status_handlers:
            return self._status_handlers[exc.status_code]
        for cls in type(exc).__mro__:
            if cls in self._exception_handlers:
                return self._exception_handlers[cls]
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != ScopeType.HTTP:
            await self.app(scope, receive, send)
            return

        response_started = False

        async def sender(message: Message) -> None:
            nonlocal response_started

            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, sender)
        except Exception as exc:
            handler = self.lookup_handler(exc)
            if handler is None:
                raise

            if response_started:
                msg = "Caught handled exception, but response already started."
                raise RuntimeError(msg) from exc

            logger.debug(f"handling {exc.__class__.__name__}: {exc}")
            request = Request(scope, receive)
            if is_async_callable(handler):
                response = await handler(request, exc)
            else:
                response = await run_in_threadpool(handler, request, exc)
            await response(scope, receive, send)

    async def http_exception(self, request: Request, exc: Exception) -> ASGIApp:
        """
        Render an HTTP exception.
        """
        assert isinstance(exc, HTTPException)
        if exc.status_code in {status.HTTP_204_NO_CONTENT, status.HTTP_304_NOT_MODIFIED}:
            return Response(status_code=exc.status_code, headers=exc.headers)
        return JSONResponse(
            {"detail": exc.detail, "type": exc.type},
            status_code=exc.status_code,
            headers=exc.headers,
        )
