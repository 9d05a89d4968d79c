"""Error classes for the HTTP template client."""

__all__ = (
    "Error",
    "BodyDecodeError",
    "ConfigurationError",
    "DuplicateHeaderError",
    "RedirectError",
    "TemplateFormatError",
    "TransportError",
)


class Error(RuntimeError):
    """Base class for all exceptions that are thrown from this package."""

    pass


class ConfigurationError(Error):
    """Error thrown when a client is constructed with a missing or invalid
    service URL.
    """

    pass


class TemplateFormatError(Error):
    """Error thrown when a request template has a missing or malformed
    request line or a malformed header line.
    """

    pass


class DuplicateHeaderError(TemplateFormatError):
    """Error thrown when the same header name appears more than once in a
    request template, compared case-insensitively.
    """

    pass


class TransportError(Error):
    """Error thrown when an HTTP exchange fails below the HTTP level: the
    connection could not be established, it broke down while sending or
    receiving, the timeout expired or the server sent an unparseable
    response head.
    """

    pass


class RedirectError(Error):
    """Error thrown when a redirect response cannot be followed."""

    pass


class BodyDecodeError(Error):
    """Error thrown by the ``json()`` accessor of a response when the body is
    not valid JSON.
    """

    pass
