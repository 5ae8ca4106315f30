from __future__ import annotations

from collections.abc import AsyncGenerator, Iterator, Mapping
from typing import Any, NoReturn, cast

from formbody._internal._parsers import parse_content_type
from formbody._internal._typeis import has_body
from formbody.datastructures import Header
from formbody.enums import Event, ScopeType
from formbody.types import DecodedBody, Message, Receive, Scope

BODY_SCOPE_KEY = "body"
PARSED_SCOPE_KEY = "_body_parsed"


async def empty_receive() -> NoReturn:  # pragma: no cover
    """Raise a `RuntimeError`.

    Serves as a placeholder `receive` function.
    """
    raise RuntimeError()


class ClientDisconnect(Exception): ...


class Request(Mapping[str, Any]):
    """
    A thin view over an HTTP scope and its `receive` channel.

    The decoded body lives in the scope itself (`scope["body"]`) so every
    application further down the chain can read it, whatever request class
    it wraps the scope with.
    """

    __slots__ = ("scope", "_receive", "_headers", "_stream_consumed", "_received")

    def __init__(self, scope: Scope, receive: Receive = empty_receive) -> None:
        assert scope["type"] == ScopeType.HTTP
        self.scope = scope
        self._receive = receive
        self._headers: Header | None = None
        self._stream_consumed = False
        self._received: list[bytes] = []

    def __getitem__(self, __key: str) -> Any:
        return self.scope[__key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.scope)

    def __len__(self) -> int:
        return len(self.scope)

    __eq__ = object.__eq__
    __hash__ = object.__hash__

    @property
    def method(self) -> str:
        return cast(str, self.scope["method"])

    @property
    def headers(self) -> Header:
        if self._headers is None:
            # otherwise underlying apps can see an exhausted generator in scope
            self._headers = Header.ensure_header_instance(scope=self.scope)
        return self._headers

    @property
    def has_body(self) -> bool:
        return has_body(self.headers)

    @property
    def content_type(self) -> str:
        """
        The lower-cased media type of the request, without parameters.
        """
        media_type, _ = parse_content_type(self.headers.get("content-type"))
        return media_type

    @property
    def body(self) -> DecodedBody:
        """
        The decoded body, `{}` until a body stage stores one.
        """
        return cast(DecodedBody, self.scope.get(BODY_SCOPE_KEY) or {})

    @body.setter
    def body(self, value: DecodedBody) -> None:
        self.scope[BODY_SCOPE_KEY] = value

    @property
    def is_body_parsed(self) -> bool:
        return bool(self.scope.get(PARSED_SCOPE_KEY, False))

    def attach_body(self, value: DecodedBody) -> None:
        """
        Store the decoded body and flag the request as parsed.
        """
        self.scope[BODY_SCOPE_KEY] = value
        self.scope[PARSED_SCOPE_KEY] = True

    async def stream(self) -> AsyncGenerator[bytes, None]:
        """
        Stream the request body in asynchronous chunks, as received.

        Raises:
            ClientDisconnect: When the client goes away before the body ends.
        """
        if self._stream_consumed:
            raise RuntimeError("Stream consumed")

        while not self._stream_consumed:
            event = await self._receive()
            if event["type"] == Event.HTTP_REQUEST:
                if not event.get("more_body", False):
                    self._stream_consumed = True
                chunk = event.get("body", b"")
                if chunk:
                    self._received.append(chunk)
                    yield chunk
            elif event["type"] == Event.HTTP_DISCONNECT:
                raise ClientDisconnect()

    def replay_receive(self) -> Receive:
        """
        Build a `receive` channel for the next application that hands out the
        body already consumed from the wire once, then defers to the original
        channel.
        """
        body = b"".join(self._received)
        replayed = False
        receive = self._receive

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": Event.HTTP_REQUEST.value, "body": body, "more_body": False}
            return await receive()

        return replay

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
