from __future__ import annotations

import json

from formbody.types import Message, Receive, Scope, Send


async def echo_app(scope: Scope, receive: Receive, send: Send) -> None:
    """
    Answers with the decoded body and the raw body still readable downstream.
    """
    raw = b""
    more_body = True
    while more_body:
        message = await receive()
        raw += message.get("body", b"")
        more_body = message.get("more_body", False)

    payload = json.dumps({"body": scope.get("body"), "raw": raw.decode("latin-1")}).encode()
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"application/json")],
        }
    )
    await send({"type": "http.response.body", "body": payload})


def make_scope(headers: dict[str, str] | None = None, method: str = "POST") -> Scope:
    return {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": "/",
        "raw_path": b"/",
        "query_string": b"",
        "root_path": "",
        "headers": [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in (headers or {}).items()
        ],
    }


def make_receive(*chunks: bytes, disconnect: bool = False) -> Receive:
    """
    A `receive` channel handing out `chunks` as body messages.

    With `disconnect`, the last chunk still announces more body and the
    client disconnects right after.
    """
    messages: list[Message] = [
        {
            "type": "http.request",
            "body": chunk,
            "more_body": disconnect or index < len(chunks) - 1,
        }
        for index, chunk in enumerate(chunks)
    ]

    async def receive() -> Message:
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    return receive


def collect_send(messages: list[Message]) -> Send:
    async def send(message: Message) -> None:
        messages.append(message)

    return send


class Recorder:
    """
    Records whether and how the next application was called.
    """

    def __init__(self) -> None:
        self.calls: list[Scope] = []
        self.received: list[Message] = []

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self.calls.append(scope)
        if scope["type"] == "http":
            self.received.append(await receive())

    @property
    def called(self) -> bool:
        return bool(self.calls)
