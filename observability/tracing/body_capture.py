"""
Request and response body capture for ASGI applications.

- `capture_request_body` drains the request body and hands back a `receive`
  callable that replays it, so downstream code reads the body exactly once.
- `ResponseBodyRecorder` decorates the ASGI `send` callable: every message is
  forwarded unchanged while status, headers and (optionally) body bytes are
  recorded for tagging.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, MutableMapping, Optional

from starlette.datastructures import Headers

from core.code_exceptions import BodyReadError

Message = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]

# Worst case UTF-8 width, so a byte budget always covers a character budget.
_MAX_BYTES_PER_CHAR = 4


def buffer_limit(max_chars: int) -> int:
    """Bytes needed to render a tag of `max_chars` characters plus overflow."""
    return (max_chars + 1) * _MAX_BYTES_PER_CHAR


def decode_body(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


class ReplayReceive:
    """ASGI `receive` that yields an already-read body before delegating.

    When `complete` is False the replayed chunk is flagged ``more_body`` and the
    next call goes back to the wrapped `receive` (or returns `pending` first),
    so a failed read surfaces downstream the same way it did here.
    """

    def __init__(
        self,
        body: bytes,
        receive: Receive,
        complete: bool = True,
        pending: Optional[Message] = None,
    ) -> None:
        self._body = body
        self._receive = receive
        self._complete = complete
        self._pending = pending
        self._replayed = False

    async def __call__(self) -> Message:
        if not self._replayed:
            self._replayed = True
            if self._body or self._complete:
                return {
                    "type": "http.request",
                    "body": self._body,
                    "more_body": not self._complete,
                }
        if self._pending is not None:
            message, self._pending = self._pending, None
            return message
        return await self._receive()


@dataclass
class CapturedBody:
    body: bytes
    receive: ReplayReceive

    @property
    def text(self) -> str:
        return decode_body(self.body)


async def capture_request_body(receive: Receive) -> CapturedBody:
    """Read the whole request body from `receive`.

    Raises:
        BodyReadError: If `receive` fails or the client disconnects before the
            last chunk. The error carries a replaying `receive` over the
            chunks read so far.
    """
    chunks: List[bytes] = []
    while True:
        try:
            message = await receive()
        except Exception as exc:
            raise BodyReadError(
                f"request body read failed: {exc!r}",
                ReplayReceive(b"".join(chunks), receive, complete=False),
            ) from exc
        if message["type"] == "http.disconnect":
            raise BodyReadError(
                "client disconnected before the request body was read",
                ReplayReceive(b"".join(chunks), receive, complete=False, pending=message),
            )
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break

    body = b"".join(chunks)
    return CapturedBody(body=body, receive=ReplayReceive(body, receive))


class ResponseBodyRecorder:
    """ASGI `send` decorator that records what the application responds with.

    Args:
        send: The `send` callable to forward to.
        capture: Retain body bytes. When False only status and headers are
            recorded.
        limit: Stop retaining body bytes past this many; the stream itself is
            always forwarded in full.
    """

    def __init__(self, send: Send, capture: bool = True, limit: Optional[int] = None) -> None:
        self._send = send
        self.capture = capture
        self.limit = limit
        self.status_code: Optional[int] = None
        self.headers: Headers = Headers()
        self._buffer = bytearray()

    @property
    def started(self) -> bool:
        return self.status_code is not None

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status_code = message["status"]
            self.headers = Headers(raw=list(message.get("headers", [])))
        elif message["type"] == "http.response.body" and self.capture:
            self._record(message.get("body", b""))
        await self._send(message)

    def _record(self, chunk: bytes) -> None:
        if self.limit is None:
            self._buffer.extend(chunk)
            return
        room = self.limit - len(self._buffer)
        if room > 0:
            self._buffer.extend(chunk[:room])

    @property
    def body(self) -> bytes:
        return bytes(self._buffer)

    def text(self) -> str:
        return decode_body(self.body)
