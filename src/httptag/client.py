"""HTTP client that turns request templates into reusable request
functions.

Example::

    from httptag import Client

    HTTP = Client("https://example.com/api/", follow_redirects=True)

    create_item = HTTP('''
        POST /items HTTP/1.1
        Accept: application/json
    ''')

    response = await create_item({"id": 1, "value": "the value"})
    data = await response.json()

Interpolated values are passed as a sequence of literal slices followed by
the values, in the same way as tagged template strings work::

    get_item = HTTP(["GET /items/", " HTTP/1.1\\nAuthorization: ", ""], 42, auth)
"""

from __future__ import annotations

from base64 import b64encode
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

from .endpoint import ServiceEndpoint
from .executor import InvocationOptions, execute
from .http import Response
from .template import CompiledRequestTemplate, parse_template

__all__ = ("Client", "RequestInvoker", "basic_auth")


def basic_auth(username: str, password: str) -> str:
    """Generates the value of the ``Authorization`` header used in HTTP
    requests to pass basic HTTP authentication.

    Parameters:
        username: name of the authenticating user
        password: password of the user

    Returns:
        the value to use in the ``Authorization`` header of a request
    """
    credentials = b64encode("{0}:{1}".format(username, password).encode("utf-8"))
    return "Basic " + credentials.decode("ascii")


class RequestInvoker:
    """Callable that performs the request described by a compiled template.

    Instances are created by calling a `Client`; they can be invoked any
    number of times, concurrently as well.
    """

    def __init__(self, client: Client, template: CompiledRequestTemplate):
        """Constructor.

        Parameters:
            client: the client that compiled the template
            template: the compiled request template
        """
        self._client = client
        self._template = template

    @property
    def template(self) -> CompiledRequestTemplate:
        """The compiled request template."""
        return self._template

    async def __call__(
        self,
        payload: Any = None,
        custom_headers: Optional[Mapping[str, Any]] = None,
        *,
        timeout: int = 5000,
        follow_redirects: Optional[bool] = None,
    ) -> Response:
        """Sends the request and returns the response.

        Parameters:
            payload: the payload to send with methods other than GET and
                HEAD. Bytes and Trio receive streams or async iterables of
                bytes are sent as they are; mappings, lists and tuples are
                sent as JSON; anything else is sent as a UTF-8 string.
            custom_headers: extra headers, overriding the headers of the
                template with the same name
            timeout: timeout of the request in milliseconds; zero or negative
                disables the timeout
            follow_redirects: whether to follow redirects; ``None`` means to
                use the default of the client

        Raises:
            TemplateFormatError: when a custom header is malformed or a
                header value cannot be encoded
            TransportError: when the request fails below the HTTP level
            RedirectError: when a redirect cannot be followed
        """
        client = self._client
        return await execute(
            client.endpoint,
            self._template,
            payload,
            custom_headers,
            InvocationOptions(timeout=timeout, follow_redirects=follow_redirects),
            follow_redirects=client.follow_redirects,
            max_redirects=client.max_redirects,
        )

    def __repr__(self) -> str:
        return "<{0} {1} {2}>".format(
            self.__class__.__name__, self._template.method, self._template.path
        )


class Client:
    """HTTP client bound to a service URL.

    Calling the client with a request template compiles the template and
    returns a `RequestInvoker`.
    """

    basic_auth = staticmethod(basic_auth)

    def __init__(
        self,
        service_url: Optional[str] = None,
        *,
        folding: bool = False,
        follow_redirects: bool = False,
        max_redirects: Optional[int] = 20,
    ):
        """Constructor.

        Parameters:
            service_url: URL providing scheme, hostname, port and path
                prefix of the service to be queried. Defaults to the value
                of the ``HTTP_SERVICE_URL`` environment variable.
            folding: whether indented lines of templates continue the
                previous header line. Must be ``False`` to allow arbitrary
                indentation of templates.
            follow_redirects: whether to follow redirects by default
            max_redirects: the maximum number of redirects followed in a
                single invocation; ``None`` means no limit

        Raises:
            ConfigurationError: when the service URL is missing or invalid
        """
        self.endpoint = ServiceEndpoint.create_from_url(service_url)
        self.folding = bool(folding)
        self.follow_redirects = bool(follow_redirects)
        self.max_redirects = max_redirects

    def __call__(
        self, literals: Union[str, Sequence[Optional[str]]], *expressions: Any
    ) -> RequestInvoker:
        """Compiles a request template.

        Parameters:
            literals: the literal slices of the template, or the whole
                template as a single string
            expressions: the values interpolated between the literal slices

        Raises:
            TemplateFormatError: when the request line is missing or
                malformed, or when a header line is malformed
            DuplicateHeaderError: when a header name is repeated
        """
        template = parse_template(
            literals,
            expressions,
            hostname=self.endpoint.hostname,
            folding=self.folding,
        )
        return RequestInvoker(self, template)

    compile = __call__

    def __repr__(self) -> str:
        return "{0}({1!r})".format(self.__class__.__name__, self.endpoint.url)
