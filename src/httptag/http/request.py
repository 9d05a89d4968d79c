"""Simple HTTP request object for the low-level HTTP transport."""

from __future__ import annotations

import logging
import math

from collections.abc import AsyncIterable
from io import BytesIO
from typing import Optional, Union
from urllib.parse import quote

from trio import (
    BrokenResourceError,
    ClosedResourceError,
    TooSlowError,
    aclose_forcefully,
    fail_after,
    open_ssl_over_tcp_stream,
    open_tcp_stream,
)
from trio.abc import ReceiveStream, Stream

from httptag.errors import TemplateFormatError, TransportError
from httptag.headers import Headers

from .chunked import LAST_CHUNK, encode_chunk
from .response import Response

__all__ = ("Body", "Request", "iter_stream")


Body = Union[bytes, ReceiveStream, AsyncIterable[bytes], None]
"""Type alias for request bodies: a block of bytes, a Trio receive
stream, an async iterable yielding blocks of bytes, or ``None`` for no body.
"""

#: Characters that are not percent-encoded in request targets
_SAFE_PATH_CHARACTERS = "/?#[]@!$&'()*+,;=:%~"

log = logging.getLogger(__name__)


def _format_header_name(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


async def iter_stream(body: Union[ReceiveStream, AsyncIterable[bytes]]):
    """Iterates over the blocks of a streamed request body."""
    if isinstance(body, ReceiveStream):
        while True:
            data = await body.receive_some()
            if not data:
                break
            yield data
    else:
        async for data in body:
            yield bytes(data)


class Request:
    """HTTP request object."""

    body: Body
    """The data to send in the body of the HTTP request."""

    headers: Headers
    """The headers to send with the HTTP request."""

    def __init__(
        self,
        method: str,
        host: str,
        path: str,
        *,
        scheme: str = "http",
        port: Optional[int] = None,
        headers: Optional[Headers] = None,
        body: Body = None,
    ):
        """Constructs a new HTTP request object.

        Parameters:
            method: the HTTP method of the request
            host: the hostname of the server to connect to
            path: the request target, including the query string
            scheme: ``http`` or ``https``
            port: the port to connect to; ``None`` selects the default port
                of the scheme
            headers: the headers of the request. The ``Connection`` header
                defaults to ``close``, the ``Content-Length`` header is
                derived from the body when the body is a block of bytes, and
                streamed bodies use chunked transfer encoding unless the
                ``Content-Length`` header is given.
            body: the body of the request
        """
        self.method = method
        self.host = host
        self.path = path
        self.scheme = scheme
        self.port = port
        self.headers = headers.copy() if headers is not None else Headers()
        self.body = body

        if "Connection" not in self.headers:
            self.headers["Connection"] = "close"

        if isinstance(body, (bytes, bytearray, memoryview)):
            if "Content-Length" not in self.headers:
                self.headers["Content-Length"] = str(len(body))
        elif body is not None:
            if "Content-Length" not in self.headers:
                self.headers["Transfer-Encoding"] = "chunked"

    @property
    def chunked(self) -> bool:
        """Whether the body of the request is sent with chunked transfer
        encoding.
        """
        return "chunked" in self.headers.get("Transfer-Encoding", "").lower()

    @property
    def target_port(self) -> int:
        """The port that the request is sent to."""
        if self.port:
            return self.port
        return 443 if self.scheme == "https" else 80

    def encode_head(self) -> bytes:
        """Returns the request line and the header section of the request,
        encoded for sending over the wire.

        Raises:
            TemplateFormatError: when a header value cannot be encoded in
                ISO-8859-1
        """
        head = BytesIO()
        head.write(
            "{0} {1} HTTP/1.1\r\n".format(
                self.method, quote(self.path, safe=_SAFE_PATH_CHARACTERS)
            ).encode("ascii")
        )
        for name, value in self.headers.items():
            try:
                encoded = str(value).encode("latin-1")
            except UnicodeEncodeError:
                raise TemplateFormatError(
                    "value of header {0!r} cannot be encoded: {1!r}".format(name, value)
                ) from None
            head.write(_format_header_name(name).encode("ascii"))
            head.write(b": ")
            head.write(encoded)
            head.write(b"\r\n")
        head.write(b"\r\n")
        return head.getvalue()

    async def send(self, timeout: Optional[float] = None) -> Response:
        """Sends the HTTP request and returns a Response_ object whose headers
        are already processed.

        The connection is closed when anything goes wrong before the response
        head has been read.

        Parameters:
            timeout: number of seconds that connecting, sending the request
                and receiving the response head may take together; the same
                limit applies to reading the response body later. ``None``
                means no limit.

        Returns:
            the response object corresponding to the request

        Raises:
            TemplateFormatError: when the request head cannot be encoded
            TransportError: when the connection fails, the timeout expires or
                the response head cannot be parsed
        """
        log.debug(
            "%s %s://%s:%d%s", self.method, self.scheme, self.host, self.target_port, self.path
        )

        head = self.encode_head()

        try:
            with fail_after(timeout if timeout is not None else math.inf):
                stream = await self._connect()
                try:
                    await self._send_over(stream, head)
                    response = Response(stream, method=self.method, timeout=timeout)
                    await response.ensure_headers_processed()
                except BaseException:
                    await aclose_forcefully(stream)
                    raise
        except TooSlowError:
            raise TransportError(
                "timeout while requesting {0}".format(self.host)
            ) from None
        except (BrokenResourceError, ClosedResourceError, OSError) as ex:
            raise TransportError(
                "request to {0} failed: {1}".format(self.host, ex)
            ) from ex

        return response

    async def _connect(self) -> Stream:
        if self.scheme == "https":
            return await open_ssl_over_tcp_stream(
                self.host, self.target_port, https_compatible=True
            )
        else:
            return await open_tcp_stream(self.host, self.target_port)

    async def _send_over(self, stream: Stream, head: bytes) -> None:
        await stream.send_all(head)

        body = self.body
        if body is None:
            return

        if isinstance(body, (bytes, bytearray, memoryview)):
            if body:
                await stream.send_all(body)
            return

        chunked = self.chunked
        async for data in iter_stream(body):
            await stream.send_all(encode_chunk(data) if chunked else data)
        if chunked:
            await stream.send_all(LAST_CHUNK)
