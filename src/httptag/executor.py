"""Execution of compiled request templates, including the optional
following of redirects.
"""

from __future__ import annotations

import logging
import posixpath
import re

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Optional
from urllib.parse import urljoin, urlsplit

from .endpoint import SUPPORTED_SCHEMES, ServiceEndpoint
from .errors import RedirectError, TemplateFormatError
from .headers import Headers
from .http import Body, Request, Response
from .payload import encode_payload, is_stream
from .template import CompiledRequestTemplate

__all__ = (
    "InvocationOptions",
    "TransportOptions",
    "execute",
    "merge_headers",
    "redirect_options",
    "resolve_path",
    "transport_options",
)

#: Header names must be HTTP tokens
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

#: Characters that may not appear in header values
_FORBIDDEN_VALUE_CHARACTERS = re.compile(r"[\r\n\0]")

#: Methods that never send the invocation payload
_BODYLESS_METHODS = ("GET", "HEAD")

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationOptions:
    """Options of a single invocation of a request template."""

    timeout: int = 5000
    """Timeout of the request in milliseconds; zero or negative disables the
    timeout.
    """

    follow_redirects: Optional[bool] = None
    """Whether to follow redirects; ``None`` means to use the default of the
    client.
    """


@dataclass(frozen=True)
class TransportOptions:
    """Everything needed to send one HTTP request over the wire."""

    scheme: str
    method: str
    host: str
    path: str
    headers: Headers = field(default_factory=Headers)
    port: Optional[int] = None
    timeout: Optional[float] = None

    @property
    def url(self) -> str:
        """The URL that the request is sent to."""
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.scheme}://{netloc}{self.path}"


def resolve_path(prefix: str, path: str) -> str:
    """Resolves the path of a request template against the path prefix of an
    endpoint the way POSIX paths are resolved: an absolute path replaces the
    prefix, ``.`` and ``..`` segments are collapsed and trailing slashes are
    dropped. The query string of the path is kept as it is.
    """
    path, sep, query = path.partition("?")
    resolved = posixpath.normpath(posixpath.join("/", prefix, path))
    if resolved.startswith("//"):
        resolved = "/" + resolved.lstrip("/")
    return resolved + sep + query


def merge_headers(
    headers: Headers, custom_headers: Optional[Mapping[str, Any]]
) -> Headers:
    """Returns a copy of the template headers with the custom headers of an
    invocation merged on top of them. ``None`` values are skipped.

    Raises:
        TemplateFormatError: when a custom header name is not a valid HTTP
            token or its value contains a line break or a NUL character
    """
    result = headers.copy()
    for name, value in (custom_headers or {}).items():
        if value is None:
            continue

        value = str(value)
        if not _HEADER_NAME.match(name):
            raise TemplateFormatError(f"invalid header name: {name!r}")
        if _FORBIDDEN_VALUE_CHARACTERS.search(value):
            raise TemplateFormatError(f"invalid value for header {name!r}: {value!r}")

        result[name] = value

    return result


def transport_options(
    endpoint: ServiceEndpoint,
    template: CompiledRequestTemplate,
    headers: Headers,
    timeout: int,
) -> TransportOptions:
    """Creates the options of the first request of an invocation.

    Parameters:
        endpoint: the endpoint that the client is bound to
        template: the compiled request template
        headers: the merged headers of the invocation
        timeout: the timeout of the invocation in milliseconds
    """
    headers = headers.copy()
    headers["host"] = endpoint.hostname

    return TransportOptions(
        scheme=endpoint.scheme,
        method=template.method,
        host=endpoint.hostname,
        path=resolve_path(endpoint.prefix, template.path),
        headers=headers,
        port=endpoint.port,
        timeout=timeout / 1000 if timeout > 0 else None,
    )


def redirect_options(options: TransportOptions, response: Response) -> TransportOptions:
    """Creates the options of the request that follows the given redirect
    response.

    The method changes to GET for status 303 and is kept otherwise. Headers
    and timeout are carried over; the ``Host`` header is replaced.

    Raises:
        RedirectError: when the redirect target uses an unsupported protocol
            or lacks a hostname
    """
    location = response.getheader("Location")
    target = urlsplit(urljoin(options.url, location))

    scheme = target.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise RedirectError(
            f"invalid redirection switching to unsupported protocol {scheme}:"
        )
    if not target.hostname:
        raise RedirectError(f"invalid redirection to {location!r}")

    try:
        port = target.port
    except ValueError:
        raise RedirectError(f"invalid port in redirection to {location!r}") from None

    path = target.path or "/"
    if target.query:
        path += "?" + target.query

    headers = options.headers.copy()
    headers["host"] = target.hostname

    return replace(
        options,
        scheme=scheme,
        method="GET" if response.status_code == 303 else options.method,
        host=target.hostname,
        path=path,
        headers=headers,
        port=port or None,
    )


async def _send(options: TransportOptions, body: Body) -> Response:
    request = Request(
        options.method,
        options.host,
        options.path,
        scheme=options.scheme,
        port=options.port,
        headers=options.headers,
        body=body,
    )
    return await request.send(timeout=options.timeout)


async def execute(
    endpoint: ServiceEndpoint,
    template: CompiledRequestTemplate,
    payload: Any = None,
    custom_headers: Optional[Mapping[str, Any]] = None,
    options: Optional[InvocationOptions] = None,
    *,
    follow_redirects: bool = False,
    max_redirects: Optional[int] = 20,
) -> Response:
    """Sends the request described by a compiled template and returns the
    response.

    Parameters:
        endpoint: the endpoint that the client is bound to
        template: the compiled request template
        payload: the payload of the request; see `encode_payload()`. It is
            sent only with methods other than GET and HEAD; otherwise the
            literal body of the template is sent, if any.
        custom_headers: extra headers, overriding the headers of the
            template with the same name. ``None`` values are ignored.
        options: the options of the invocation
        follow_redirects: whether to follow redirects when the options do
            not say otherwise
        max_redirects: the maximum number of redirects to follow; ``None``
            means no limit

    Raises:
        TemplateFormatError: when a custom header is malformed
        TransportError: when the request fails below the HTTP level
        RedirectError: when a redirect cannot be followed
    """
    options = options or InvocationOptions()
    if options.follow_redirects is not None:
        follow_redirects = bool(options.follow_redirects)

    headers = merge_headers(template.headers, custom_headers)
    body = encode_payload(payload, headers)
    raw_body = template.raw_body.encode("utf-8") if template.raw_body else None

    current = transport_options(endpoint, template, headers, options.timeout)
    hops = 0

    while True:
        if body is not None and current.method not in _BODYLESS_METHODS:
            response = await _send(current, body)
        else:
            response = await _send(current, raw_body)

        if not (follow_redirects and response.is_redirect):
            return response

        await response.aclose()

        if is_stream(payload):
            raise RedirectError(
                "following redirection failed due to streamed request body gone"
            )

        if max_redirects is not None and hops >= max_redirects:
            log.warning(
                "Giving up on %s %s after %d redirects",
                template.method,
                endpoint.url,
                hops,
            )
            raise RedirectError(f"too many redirects (limit is {max_redirects})")

        next_options = redirect_options(current, response)
        log.debug(
            "Following %d redirect from %s to %s",
            response.status_code,
            current.url,
            next_options.url,
        )
        current = next_options
        hops += 1
