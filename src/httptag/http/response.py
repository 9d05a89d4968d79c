"""Simple HTTP response object for the low-level HTTP transport."""

from __future__ import annotations

import json
import math

from typing import Any, Optional, TYPE_CHECKING

from trio import BrokenResourceError, ClosedResourceError, Lock, TooSlowError, fail_after

from httptag.errors import BodyDecodeError, TransportError
from httptag.headers import Headers

from .chunked import Dechunker, NullDechunker, ResponseDechunker

if TYPE_CHECKING:
    from trio.abc import ReceiveStream, Stream

__all__ = ("Response",)


#: Status codes of responses that never carry a body
_BODYLESS_STATUS_CODES = (204, 304)


class BufferedReader:
    """Reads lines and blocks of bytes from a Trio receive stream.

    Bytes received beyond the end of the last line stay in the buffer and are
    handed out first by `receive_some()`, so the body reader sees the part of
    the body that arrived together with the response head.
    """

    _stream: ReceiveStream
    _buffer: bytearray

    def __init__(self, stream: ReceiveStream, max_line_length: int = 16384):
        self._stream = stream
        self._buffer = bytearray()
        self._max_line_length = max_line_length

    async def readline(self) -> bytes:
        """Returns the next line including its terminating newline.

        Returns an empty byte string when the stream ends before a complete
        line was received.

        Raises:
            ValueError: when the line is longer than the allowed maximum
        """
        search_from = 0
        while True:
            index = self._buffer.find(b"\n", search_from)
            if index >= 0:
                line = bytes(self._buffer[: index + 1])
                del self._buffer[: index + 1]
                return line

            if len(self._buffer) > self._max_line_length:
                raise ValueError("line too long")

            search_from = len(self._buffer)
            data = await self._stream.receive_some(4096)
            if not data:
                return b""
            self._buffer += data

    async def receive_some(self, max_bytes: int) -> bytes:
        """Returns at most the given number of bytes, taking them from the
        buffer first and from the stream when the buffer is empty.
        """
        if self._buffer:
            data = bytes(self._buffer[:max_bytes])
            del self._buffer[:max_bytes]
            return data

        return await self._stream.receive_some(max_bytes)


class Response:
    """Simple HTTP response object that reads from a Trio Stream.

    The response head is parsed with `ensure_headers_processed()`. The body
    is read lazily by the first call to `content()`, `text()` or `json()`;
    the result is memoized so later calls do not touch the stream again.
    Chunked responses are de-chunked automatically.
    """

    _stream: Stream
    _reader: BufferedReader
    _headers: Optional[Headers]
    _protocol: Optional[str]
    _status_code: Optional[int]
    _reason: str
    _dechunker: Optional[Dechunker]
    _body: Optional[bytes]
    _body_lock: Lock

    def __init__(self, stream: Stream, method: str = "GET", timeout: Optional[float] = None):
        """Constructor.

        Parameters:
            stream: the stream to read the response from
            method: the method of the request that this response belongs to;
                responses to HEAD requests have no body
            timeout: number of seconds that reading the body may take;
                ``None`` means no limit
        """
        self._stream = stream
        self._method = method
        self._timeout = timeout

        self._reader = BufferedReader(stream)
        self._headers = None
        self._protocol = None
        self._status_code = None
        self._reason = ""
        self._dechunker = None
        self._body = None
        self._body_lock = Lock()

    async def _read_headers(self) -> None:
        """Reads all the headers from the response and ensures that the
        reader points to the first body byte.

        Informational (1xx) responses preceding the final response are
        skipped.
        """
        assert self._headers is None

        readline = self._reader.readline

        while True:
            line = await readline()
            if not line:
                raise TransportError(
                    "Connection closed unexpectedly by the remote server"
                )

            parts = line.strip().split(None, 2)
            if len(parts) < 2 or not parts[0].startswith(b"HTTP/") or not parts[1].isdigit():
                raise TransportError("Invalid response line: {0!r}".format(line))

            headers = Headers()
            while True:
                raw_line = await readline()
                if not raw_line:
                    raise TransportError(
                        "Connection closed before the end of the response head"
                    )

                line = raw_line.rstrip(b"\r\n")
                if not line:
                    break

                if line[:1] in (b" ", b"\t") and headers:
                    # obsolete line folding; continues the last header
                    last = list(headers)[-1]
                    headers[last] += " " + line.strip().decode("latin-1")
                    continue

                key, sep, value = line.partition(b":")
                if not sep:
                    raise TransportError(
                        "Found invalid HTTP header line: {0!r}".format(line)
                    )

                headers.add(key.decode("latin-1"), value.strip().decode("latin-1"))

            code = int(parts[1])
            if 100 <= code < 200 and code != 101:
                continue

            break

        self._protocol = parts[0].decode("ascii")
        self._status_code = code
        self._reason = parts[2].decode("latin-1") if len(parts) > 2 else ""
        self._headers = headers

    def _process_headers(self) -> None:
        if "chunked" in self.getheader("Transfer-Encoding", "").lower():
            self._dechunker = ResponseDechunker()
        else:
            self._dechunker = NullDechunker()

    @property
    def _has_body(self) -> bool:
        return not (
            self._method == "HEAD"
            or self.status_code < 200
            or self.status_code in _BODYLESS_STATUS_CODES
        )

    async def aclose(self) -> None:
        """Closes the response object."""
        await self._stream.aclose()

    async def ensure_headers_processed(self) -> None:
        """Ensures that the headers of the response are processed.

        Raises:
            TransportError: when the response head cannot be parsed or the
                connection breaks down while reading it
        """
        if self._headers is None:
            try:
                await self._read_headers()
            except (BrokenResourceError, ClosedResourceError, OSError, ValueError) as ex:
                raise TransportError(
                    "failed to read response head: {0}".format(ex)
                ) from ex
            self._process_headers()

    def getheader(self, header: str, default: Any = None) -> Any:
        """Returns the value of the given header or the given default value,
        assuming that the headers are already processed.

        Use `ensure_headers_processed()` if you want to make sure that the
        headers are already processed.
        """
        assert self._headers is not None, "Headers are not processed yet"
        return self._headers.get(header, default)

    @property
    def headers(self) -> Headers:
        """Returns the response headers, keyed by lowercase header names,
        assuming that the headers are already processed.
        """
        assert self._headers is not None, "Headers are not processed yet"
        return self._headers

    @property
    def protocol(self) -> str:
        """Returns the protocol string found in the response; typically
        ``HTTP/1.0`` or ``HTTP/1.1``.
        """
        assert self._protocol is not None, "Headers are not processed yet"
        return self._protocol

    @property
    def reason(self) -> str:
        """Returns the reason phrase of the status line; may be empty."""
        return self._reason

    @property
    def status_code(self) -> int:
        """Returns the numeric status code of the response."""
        assert self._status_code is not None, "Headers are not processed yet"
        return self._status_code

    @property
    def is_redirect(self) -> bool:
        """Whether the response redirects to another location."""
        return 300 <= self.status_code < 400 and self.getheader("Location") is not None

    async def content(self) -> bytes:
        """Returns the body of the response.

        The body is read from the stream on the first call only; the stream
        is closed afterwards.

        Raises:
            TransportError: when the connection breaks down or the timeout
                expires while reading the body
        """
        async with self._body_lock:
            if self._body is None:
                self._body = await self._read_body()
            return self._body

    async def text(self) -> str:
        """Returns the body of the response decoded as UTF-8."""
        return (await self.content()).decode("utf-8", errors="replace")

    async def json(self) -> Any:
        """Returns the body of the response parsed as JSON.

        Raises:
            BodyDecodeError: when the body is not valid JSON
        """
        raw = await self.content()
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as ex:
            raise BodyDecodeError(
                "response body is not valid JSON: {0}".format(ex)
            ) from ex

    async def _read_body(self) -> bytes:
        await self.ensure_headers_processed()

        if not self._has_body:
            await self.aclose()
            return b""

        timeout = self._timeout if self._timeout is not None else math.inf
        try:
            with fail_after(timeout):
                body = await self._receive_all()
        except TooSlowError:
            raise TransportError(
                "timeout while reading the response body"
            ) from None
        except (BrokenResourceError, ClosedResourceError, OSError, ValueError) as ex:
            raise TransportError(
                "failed to read response body: {0}".format(ex)
            ) from ex
        finally:
            await self.aclose()

        return body

    async def _receive_all(self) -> bytes:
        assert self._headers is not None
        assert self._dechunker is not None

        length = self.getheader("Content-Length")
        bytes_left = None
        if length is not None and isinstance(self._dechunker, NullDechunker):
            try:
                bytes_left = int(length)
            except ValueError:
                raise ValueError(f"invalid Content-Length header: {length!r}") from None

        result = []
        while bytes_left is None or bytes_left > 0:
            to_read = 4096 if bytes_left is None else min(bytes_left, 4096)
            chunk = await self._reader.receive_some(to_read)
            if not chunk:
                break

            if bytes_left is not None:
                bytes_left -= len(chunk)

            chunk = self._dechunker.feed(chunk)

            # At this point it may happen that we are handed an empty
            # chunk from the dechunker. It does not mean EOF so we need to
            # continue with the next iteration.
            if chunk:
                result.append(chunk)

            if self._dechunker.finished:
                break

        if bytes_left is not None and bytes_left > 0:
            raise ValueError("connection closed before the end of the body")

        if isinstance(self._dechunker, ResponseDechunker) and not self._dechunker.finished:
            raise ValueError("connection closed before the end of the body")

        return b"".join(result)
