from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from typing import Any, Generic, ParamSpec, cast

from formbody._internal._module_loading import import_string
from formbody.types import ASGIApp

P = ParamSpec("P")


class DefineMiddleware(Generic[P]):
    """
    Wrapper that create the middleware classes.

    The middleware can be given as a class or as a dotted path, imported on
    first use.
    """

    __slots__ = ("args", "kwargs", "middleware_or_string")

    def __init__(
        self, cls: Callable[..., ASGIApp] | str, *args: P.args, **kwargs: P.kwargs
    ) -> None:
        self.middleware_or_string = cls
        self.args = args
        self.kwargs = kwargs

    @property
    def middleware(self) -> Callable[..., ASGIApp]:
        middleware_or_string = self.middleware_or_string
        if isinstance(middleware_or_string, str):
            self.middleware_or_string = middleware_or_string = import_string(middleware_or_string)
        return cast(Callable[..., ASGIApp], middleware_or_string)

    def __call__(self, app: ASGIApp) -> ASGIApp:
        return self.middleware(app, *self.args, **self.kwargs)

    def __iter__(self) -> Iterator[Any]:
        return iter((self.middleware, self.args, self.kwargs))

    def __repr__(self) -> str:
        args_repr = ", ".join(
            [self.middleware.__name__]
            + [f"{value!r}" for value in self.args]
            + [f"{key}={value!r}" for key, value in self.kwargs.items()]
        )
        return f"{self.__class__.__name__}({args_repr})"


Middleware = DefineMiddleware


def build_middleware_stack(app: ASGIApp, middleware: Sequence[DefineMiddleware]) -> ASGIApp:
    """
    Wrap `app` so the first middleware in the sequence is the outermost one.
    """
    for definition in reversed(middleware):
        app = definition(app)
    return app
