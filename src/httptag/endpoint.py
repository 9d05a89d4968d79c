"""Service endpoint that HTTP templates of a client are bound to."""

from __future__ import annotations

import os

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from .errors import ConfigurationError

__all__ = ("ServiceEndpoint", "SUPPORTED_SCHEMES")


SUPPORTED_SCHEMES = ("http", "https")
"""URL schemes that the client knows how to connect to."""

SERVICE_URL_ENV_VAR = "HTTP_SERVICE_URL"
"""Name of the environment variable to take the service URL from when no
URL is given explicitly.
"""


@dataclass(frozen=True)
class ServiceEndpoint:
    """Dataclass that holds the scheme, the host, the port and the path
    prefix of the service that a client sends its requests to.
    """

    scheme: str
    hostname: str
    port: Optional[int] = None
    prefix: str = "/"

    @classmethod
    def create_from_url(cls, url: Optional[str] = None) -> ServiceEndpoint:
        """Creates an endpoint from a URL of the form::

            http[s]://<hostname>[:<port>][/<prefix>]

        Parameters:
            url: the URL of the service. When it is ``None`` or empty, the
                URL is taken from the ``HTTP_SERVICE_URL`` environment
                variable.

        Raises:
            ConfigurationError: when no URL was given, the URL is relative,
                selects an unsupported scheme or lacks a hostname
        """
        url = url or os.environ.get(SERVICE_URL_ENV_VAR)
        if not url:
            raise ConfigurationError(
                f"missing service URL; pass one explicitly or set {SERVICE_URL_ENV_VAR}"
            )

        parts = urlsplit(url)
        if not parts.scheme:
            raise ConfigurationError(f"service URL must be absolute: {url!r}")

        scheme = parts.scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            raise ConfigurationError(f"unsupported service protocol {scheme}:")

        if not parts.hostname:
            raise ConfigurationError(f"service URL lacks a hostname: {url!r}")

        try:
            port = parts.port
        except ValueError:
            raise ConfigurationError(f"invalid port in service URL: {url!r}") from None

        return cls(
            scheme=scheme,
            hostname=parts.hostname,
            port=port or None,
            prefix=parts.path or "/",
        )

    @property
    def url(self) -> str:
        """The URL of the endpoint, reassembled from its parts."""
        netloc = self.hostname if self.port is None else f"{self.hostname}:{self.port}"
        return f"{self.scheme}://{netloc}{self.prefix}"
