"""Minimal HTTP/1.1 transport on top of Trio streams.

Every request opens a new connection that is closed when the response body
has been read or the response is closed explicitly.
"""

from .request import Body, Request
from .response import Response

__all__ = ("Body", "Request", "Response")
