"""Request body size limit middleware.

Verification and ranking payloads are tiny, so bodies above the configured
limit are rejected with 413 before they are parsed. Enforced for both
Content-Length and chunked transfer encoding.
"""

import json

from starlette.types import Message, Receive, Scope, Send


class SizeLimitedStream:
    """A receive wrapper that counts body bytes as they are read."""

    class SizeExceededError(Exception):
        """Raised when request body exceeds size limit."""

    def __init__(self, receive: Receive, max_size: int):
        self._receive = receive
        self._max_size = max_size
        self._bytes_read = 0

    async def receive(self) -> Message:
        message = await self._receive()
        if message["type"] == "http.request":
            self._bytes_read += len(message.get("body", b""))
            if self._bytes_read > self._max_size:
                raise self.SizeExceededError(
                    f"Request body too large. Maximum allowed: {self._max_size} bytes"
                )
        return message


class RequestSizeLimitMiddleware:
    """ASGI middleware returning HTTP 413 (Payload Too Large) for oversized bodies.

    Raw ASGI so the receive callable is wrapped before Starlette's Request
    is constructed.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=10 * 1024)
    """

    def __init__(self, app, max_body_size: int = 10 * 1024):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Fast path: trust a declared Content-Length
        for name, value in scope.get("headers", []):
            if name.lower() == b"content-length":
                try:
                    if int(value.decode()) > self.max_body_size:
                        await self._send_413_response(send)
                        return
                except ValueError:
                    pass
                break

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        stream = SizeLimitedStream(receive, self.max_body_size)
        try:
            await self.app(scope, stream.receive, tracking_send)
        except SizeLimitedStream.SizeExceededError as exc:
            if response_started:
                raise
            await self._send_413_response(send, detail=str(exc))

    async def _send_413_response(self, send: Send, detail: str | None = None) -> None:
        if detail is None:
            detail = f"Request body too large. Maximum allowed: {self.max_body_size} bytes"

        body = json.dumps(
            {"success": False, "error": "payload_too_large", "message": detail}
        ).encode()
        await send(
            {
                "type": "http.response.start",
                "status": 413,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
