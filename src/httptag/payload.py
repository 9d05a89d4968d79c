"""Encoding of the payloads passed to request invocations."""

import json

from collections.abc import AsyncIterable, Mapping
from typing import Any

from trio.abc import ReceiveStream

from .headers import Headers
from .http import Body

__all__ = ("JSON_CONTENT_TYPE", "encode_payload", "is_stream")


JSON_CONTENT_TYPE = "application/json; charset=utf8"
"""Content type attached to payloads that were serialized to JSON."""


def is_stream(payload: Any) -> bool:
    """Returns whether the given payload is streamed, i.e. it can be sent
    only once.
    """
    return isinstance(payload, (ReceiveStream, AsyncIterable))


def encode_payload(payload: Any, headers: Headers) -> Body:
    """Converts a payload into a request body.

    Bytes and streams are passed through unchanged. Mappings, lists and
    tuples are serialized to JSON, and the ``Content-Type`` header is set to
    JSON unless it is present already. Anything else is converted to a
    string (``true``/``false`` for booleans, ``1`` for ``1.0``) and encoded
    in UTF-8.

    Parameters:
        payload: the payload to encode; ``None`` means no payload
        headers: the headers of the request; may be modified

    Returns:
        the body to send, or ``None`` if there is no payload
    """
    if payload is None:
        return None

    if isinstance(payload, (bytes, bytearray, memoryview)) or is_stream(payload):
        return payload

    if isinstance(payload, (Mapping, list, tuple)):
        if "content-type" not in headers:
            headers["content-type"] = JSON_CONTENT_TYPE
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    return _format_scalar(payload).encode("utf-8")


def _format_scalar(value: Any) -> str:
    """Returns the string form of a scalar payload. Booleans are written in
    lowercase and floats without a fractional part are written as integers.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
