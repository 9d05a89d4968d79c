"""Main package for the HTTP template client."""

from .client import Client, RequestInvoker, basic_auth
from .errors import (
    BodyDecodeError,
    ConfigurationError,
    DuplicateHeaderError,
    Error,
    RedirectError,
    TemplateFormatError,
    TransportError,
)
from .http import Response
from .version import __version__, __version_info__

__all__ = (
    "__version__",
    "__version_info__",
    "BodyDecodeError",
    "Client",
    "ConfigurationError",
    "DuplicateHeaderError",
    "Error",
    "RedirectError",
    "RequestInvoker",
    "Response",
    "TemplateFormatError",
    "TransportError",
    "basic_auth",
)
