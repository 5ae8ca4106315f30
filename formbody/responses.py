from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from formbody import status
from formbody.datastructures import Header
from formbody.types import Receive, Scope, Send


class Response:
    """
    A minimal ASGI response, enough to report decoding failures.
    """

    media_type: str | None = None
    charset: str = "utf-8"

    def __init__(
        self,
        content: Any = None,
        status_code: int = status.HTTP_200_OK,
        headers: Mapping[str, str] | None = None,
        media_type: str | None = None,
    ) -> None:
        self.status_code = status_code
        if media_type is not None:
            self.media_type = media_type
        self.body = self.make_response(content)
        self.headers = self.make_headers(headers)

    def make_response(self, content: Any) -> bytes:
        if content is None:
            return b""
        if isinstance(content, bytes):
            return content
        return str(content).encode(self.charset)

    def make_headers(self, headers: Mapping[str, str] | None) -> Header:
        response_headers = Header(headers)
        if self.status_code not in {status.HTTP_204_NO_CONTENT, status.HTTP_304_NOT_MODIFIED}:
            response_headers["content-length"] = str(len(self.body))
        if self.media_type is not None and "content-type" not in response_headers:
            content_type = self.media_type
            if content_type.startswith("text/"):
                content_type += f"; charset={self.charset}"
            response_headers["content-type"] = content_type
        return response_headers

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": list(self.headers.encoded_multi_items()),
            }
        )
        await send({"type": "http.response.body", "body": self.body})


class JSONResponse(Response):
    media_type = "application/json"

    def make_response(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")
