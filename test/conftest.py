from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import trio

from pytest import fixture

from httptag.http.chunked import ResponseDechunker


@dataclass
class ReceivedRequest:
    """Request as seen by the test server."""

    method: str
    path: str
    headers: dict[str, str]
    body: bytes


@dataclass
class Reply:
    """Response that the test server should send."""

    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    chunked: bool = False


Handler = Callable[[ReceivedRequest], Awaitable[Reply]]


class FakeServer:
    """HTTP server running in the test process that records every request it
    receives and answers with the reply produced by a handler.
    """

    def __init__(self, handler: Handler):
        self.handler = handler
        self.port = 0
        self.requests: list[ReceivedRequest] = []

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}/"

    async def handle(self, stream) -> None:
        async with stream:
            request = await self._receive(stream)
            if request is None:
                return

            self.requests.append(request)
            reply = await self.handler(request)

            try:
                await stream.send_all(self._encode(request, reply))
            except trio.BrokenResourceError:
                pass

    async def _receive(self, stream):
        buffer = bytearray()
        while b"\r\n\r\n" not in buffer:
            data = await stream.receive_some(4096)
            if not data:
                return None
            buffer += data

        head, _, rest = bytes(buffer).partition(b"\r\n\r\n")
        lines = head.decode("latin-1").split("\r\n")
        method, path, _ = lines[0].split(" ", 2)
        headers = {}
        for line in lines[1:]:
            name, _, value = line.partition(":")
            headers[name.strip().lower()] = value.strip()

        body = bytearray(rest)
        if "content-length" in headers:
            length = int(headers["content-length"])
            while len(body) < length:
                data = await stream.receive_some(4096)
                if not data:
                    break
                body += data
        elif headers.get("transfer-encoding") == "chunked":
            dechunker = ResponseDechunker()
            decoded = bytearray(dechunker.feed(bytes(body)))
            while not dechunker.finished:
                data = await stream.receive_some(4096)
                if not data:
                    break
                decoded += dechunker.feed(data)
            body = decoded

        return ReceivedRequest(method, path, headers, bytes(body))

    def _encode(self, request: ReceivedRequest, reply: Reply) -> bytes:
        lines = [f"HTTP/1.1 {reply.status} Whatever"]
        headers = dict(reply.headers)
        headers["Connection"] = "close"
        if reply.chunked:
            headers["Transfer-Encoding"] = "chunked"
        else:
            headers["Content-Length"] = str(len(reply.body))
        lines.extend(f"{name}: {value}" for name, value in headers.items())

        head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
        if request.method == "HEAD":
            return head

        if reply.chunked:
            body = b"".join(
                b"%x\r\n%s\r\n" % (len(reply.body[i : i + 3]), reply.body[i : i + 3])
                for i in range(0, len(reply.body), 3)
            )
            return head + body + b"0\r\n\r\n"

        return head + reply.body


class RawServer(FakeServer):
    """Test server that answers every request with the same raw bytes, which
    need not form a complete HTTP response, and then closes the connection.
    """

    def __init__(self, data: bytes):
        async def handler(request: ReceivedRequest) -> Reply:
            return Reply()

        super().__init__(handler)
        self.data = data

    def _encode(self, request: ReceivedRequest, reply: Reply) -> bytes:
        return self.data


@asynccontextmanager
async def _run(server: FakeServer):
    listeners = await trio.open_tcp_listeners(0, host="127.0.0.1")
    server.port = listeners[0].socket.getsockname()[1]

    async with trio.open_nursery() as nursery:
        nursery.start_soon(trio.serve_listeners, server.handle, listeners)
        try:
            yield server
        finally:
            nursery.cancel_scope.cancel()


@fixture
def serve():
    """Returns an async context manager that runs a test HTTP server with
    the given handler for the duration of the block.

    Assertions about errors should be made inside the block; exceptions
    escaping it are wrapped by the nursery of the server.
    """
    return lambda handler: _run(FakeServer(handler))


@fixture
def serve_raw():
    """Returns an async context manager that runs a test server answering
    every request with the given raw bytes for the duration of the block.
    """
    return lambda data: _run(RawServer(data))


@fixture
def reply():
    """Returns a handler factory that answers every request with the same
    reply.
    """

    def factory(*args, **kwds) -> Handler:
        async def handler(request: ReceivedRequest) -> Reply:
            return Reply(*args, **kwds)

        return handler

    return factory
