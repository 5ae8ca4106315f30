from __future__ import annotations

import zlib
from collections.abc import Awaitable, Callable
from typing import Any

from formbody.concurrency import enforce_async_callable
from formbody.enums import ContentEncoding
from formbody.exceptions import (
    HTTPException,
    MalformedContentEncoding,
    PayloadTooLarge,
    RequestAborted,
    RequestSizeMismatch,
    UnsupportedContentEncoding,
    VerificationFailed,
)
from formbody.logging import logger
from formbody.requests import ClientDisconnect, Request
from formbody.types import Send

Verify = Callable[[Request, Send, bytes, str], Any | Awaitable[Any]]

_WBITS: dict[str, int] = {
    ContentEncoding.GZIP: 16 + zlib.MAX_WBITS,
    ContentEncoding.DEFLATE: zlib.MAX_WBITS,
}


class BodyReader:
    """
    Reads a whole request body from the `receive` channel of a request.

    The body is inflated when it is `gzip` or `deflate` encoded and the
    reader was allowed to, and it is never allowed to grow past `limit`
    bytes once inflated. Compressed data is only expanded up to that limit,
    so small compressed payloads cannot blow up in memory.

    Args:
        request: The request to read from.
        limit: Maximum size of the (inflated) body in bytes.
        inflate: Whether encoded bodies are inflated or rejected.
    """

    def __init__(self, request: Request, *, limit: int | float, inflate: bool = True) -> None:
        self.request = request
        self.limit = limit
        self.inflate = inflate
        self.received = 0
        self.encoding = self.get_content_encoding()
        self.length = self.get_declared_length()

    def get_content_encoding(self) -> str:
        encoding = self.request.headers.get("content-encoding", "").strip().lower()
        encoding = encoding or ContentEncoding.IDENTITY

        if not self.inflate and encoding != ContentEncoding.IDENTITY:
            raise UnsupportedContentEncoding(
                detail="content encoding unsupported", encoding=encoding
            )

        if encoding not in (ContentEncoding.IDENTITY, *_WBITS):
            raise UnsupportedContentEncoding(
                detail=f'unsupported content encoding "{encoding}"', encoding=encoding
            )
        return encoding

    def get_declared_length(self) -> int | None:
        """
        The Content-Length header, only meaningful for identity bodies.
        """
        if self.encoding != ContentEncoding.IDENTITY:
            return None
        value = self.request.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value.strip())
        except ValueError:
            return None

    def accept(self, chunk: bytes) -> bytes:
        self.received += len(chunk)
        if self.received > self.limit:
            raise PayloadTooLarge(expected=self.length, received=self.received, limit=self.limit)
        return chunk

    def remaining(self) -> int:
        # one byte over the limit is enough to know the limit is exceeded
        return max(int(min(self.limit - self.received, 1 << 30)), 0) + 1

    async def read(self) -> bytes:
        if self.length is not None and self.length > self.limit:
            raise PayloadTooLarge(expected=self.length, length=self.length, limit=self.limit)

        decompressor = (
            zlib.decompressobj(_WBITS[self.encoding])
            if self.encoding != ContentEncoding.IDENTITY
            else None
        )
        chunks: list[bytes] = []

        try:
            async for chunk in self.request.stream():
                if decompressor is None:
                    chunks.append(self.accept(chunk))
                    continue

                data = decompressor.decompress(chunk, self.remaining())
                chunks.append(self.accept(data))
                while decompressor.unconsumed_tail:
                    data = decompressor.decompress(decompressor.unconsumed_tail, self.remaining())
                    chunks.append(self.accept(data))
        except ClientDisconnect as exc:
            raise RequestAborted(
                expected=self.length, received=self.received, code="ECONNABORTED"
            ) from exc
        except zlib.error as exc:
            raise MalformedContentEncoding(detail=str(exc), encoding=self.encoding) from exc

        if decompressor is not None:
            try:
                chunks.append(self.accept(decompressor.flush()))
            except zlib.error as exc:
                raise MalformedContentEncoding(detail=str(exc), encoding=self.encoding) from exc
            if not decompressor.eof:
                raise MalformedContentEncoding(
                    detail="unexpected end of file", encoding=self.encoding
                )

        if self.length is not None and self.received != self.length:
            raise RequestSizeMismatch(expected=self.length, received=self.received)

        return b"".join(chunks)


async def read_body(
    request: Request,
    *,
    limit: int | float,
    inflate: bool = True,
    encoding: str = "utf-8",
    verify: Verify | None = None,
    send: Send | None = None,
) -> str:
    """
    Acquire and decode the body of `request`.

    Args:
        request: The request to read.
        limit: Maximum body size in bytes, after inflation.
        inflate: Whether `gzip`/`deflate` bodies are inflated.
        encoding: The charset used to decode the bytes. Invalid sequences are
            replaced rather than rejected.
        verify: Optional `verify(request, send, body, encoding)` callback, sync
            or async, called with the raw bytes before decoding. Raising from it
            rejects the body with a 403.
        send: The `send` channel handed to `verify`.

    Raises:
        HTTPException: One of the reader errors, classified by `type`.
    """
    reader = BodyReader(request, limit=limit, inflate=inflate)
    logger.debug(f"read body, encoding {reader.encoding!r}, limit {limit}")
    body = await reader.read()

    if verify is not None:
        logger.debug("verify body")
        try:
            await enforce_async_callable(verify)(request, send, body, encoding)
        except HTTPException:
            raise
        except Exception as exc:
            raise VerificationFailed(
                detail=str(exc) or "verification failed",
                type=getattr(exc, "type", None),
                body=body,
            ) from exc

    return body.decode(encoding, errors="replace")
