"""Chunked transfer coding: dechunker objects that convert a chunked HTTP
response into a normal byte stream, and the encoder used for streamed
request bodies.
"""

from abc import ABCMeta, abstractmethod
from enum import Enum
from typing import Optional

__all__ = ("Dechunker", "NullDechunker", "ResponseDechunker", "encode_chunk", "LAST_CHUNK")


LAST_CHUNK = b"0\r\n\r\n"
"""The zero-length chunk that terminates a chunked message without
trailers.
"""


def encode_chunk(data: bytes) -> bytes:
    """Encodes a block of data as a single chunk of a chunked message.

    Empty blocks are encoded as an empty byte string because a zero-length
    chunk would terminate the message.
    """
    if not data:
        return b""
    return b"%x\r\n%s\r\n" % (len(data), data)


class ResponseDechunkerState(Enum):
    SIZE = "SIZE"
    EXTENSION = "EXTENSION"
    SIZE_ENDING = "SIZE_ENDING"
    BODY = "BODY"
    BODY_ENDING = "BODY_ENDING"
    BODY_ENDED = "BODY_ENDED"
    TRAILER_START = "TRAILER_START"
    TRAILER = "TRAILER"
    TRAILER_ENDING = "TRAILER_ENDING"
    DONE = "DONE"


class Dechunker(metaclass=ABCMeta):
    """Base class for dechunkers."""

    @abstractmethod
    def feed(self, data: bytes) -> bytes:
        raise NotImplementedError

    @property
    def finished(self) -> bool:
        """Whether the dechunker has seen the end of the message."""
        return False


class NullDechunker(Dechunker):
    """Null dechunker that is suitable for un-chunked HTTP responses."""

    def feed(self, data: bytes) -> bytes:
        """Returns the data fed into the dechunker without changes.

        Parameters:
            data: the bytes to feed into the dechunker

        Returns:
            bytes: the same bytes
        """
        return data


class ResponseDechunker(Dechunker):
    """Merges the chunks of a HTTP response that is streamed using chunked
    transfer encoding.

    Chunk extensions and trailer fields are skipped. The dechunker reports
    itself as finished after the terminating zero-length chunk and the
    trailer section have been consumed.
    """

    def __init__(self):
        """Constructor."""
        self.reset()

    @property
    def finished(self) -> bool:
        return self._state is ResponseDechunkerState.DONE

    def feed(self, data: bytes) -> bytes:
        """Feeds some bytes into the dechunker object. Returns dechunked
        data.

        Parameters:
            data: the bytes to feed into the dechunker

        Returns:
            bytes: the dechunked data

        Raises:
            ValueError: when the data violates the chunked transfer coding
        """
        result = bytearray()
        for byte in data:
            byte = self._feed_byte(byte)
            if byte is not None:
                result.append(byte)
        return bytes(result)

    def reset(self) -> None:
        """Resets the dechunker to its ground state."""
        self._chunk_length = 0
        self._state = ResponseDechunkerState.SIZE

    def _expect(self, byte: int, expected: int) -> None:
        if byte != expected:
            raise ValueError(
                "chunked transfer encoding protocol "
                "violation; got char with code {0!r} when expecting "
                "{1}".format(byte, expected)
            )

    def _feed_byte(self, byte: int) -> Optional[int]:
        state = self._state

        if state is ResponseDechunkerState.SIZE:
            if byte == 13:
                self._state = ResponseDechunkerState.SIZE_ENDING
            elif byte == 59:
                self._state = ResponseDechunkerState.EXTENSION
            else:
                try:
                    self._chunk_length = (self._chunk_length << 4) + int(chr(byte), 16)
                except ValueError:
                    raise ValueError(
                        "chunked transfer encoding protocol "
                        "violation; got char with code {0} when expecting a "
                        "hexadecimal number".format(byte)
                    ) from None
        elif state is ResponseDechunkerState.EXTENSION:
            if byte == 13:
                self._state = ResponseDechunkerState.SIZE_ENDING
        elif state is ResponseDechunkerState.SIZE_ENDING:
            self._expect(byte, 10)
            if self._chunk_length > 0:
                self._state = ResponseDechunkerState.BODY
            else:
                self._state = ResponseDechunkerState.TRAILER_START
        elif state is ResponseDechunkerState.BODY:
            self._chunk_length -= 1
            if self._chunk_length == 0:
                self._state = ResponseDechunkerState.BODY_ENDING
            return byte
        elif state is ResponseDechunkerState.BODY_ENDING:
            self._expect(byte, 13)
            self._state = ResponseDechunkerState.BODY_ENDED
        elif state is ResponseDechunkerState.BODY_ENDED:
            self._expect(byte, 10)
            self.reset()
        elif state is ResponseDechunkerState.TRAILER_START:
            if byte == 13:
                self._state = ResponseDechunkerState.TRAILER_ENDING
            else:
                self._state = ResponseDechunkerState.TRAILER
        elif state is ResponseDechunkerState.TRAILER:
            if byte == 10:
                self._state = ResponseDechunkerState.TRAILER_START
        elif state is ResponseDechunkerState.TRAILER_ENDING:
            self._expect(byte, 10)
            self._state = ResponseDechunkerState.DONE
        elif state is ResponseDechunkerState.DONE:
            pass
        else:
            raise ValueError("invalid decoder state: {0!r}".format(self._state))

        return None
