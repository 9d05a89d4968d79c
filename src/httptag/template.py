"""Compiler and parser for request templates.

A request template describes an HTTP request in the same textual form in
which it is sent over the wire: a request line, followed by any number of
header lines, followed by an empty line and an optional literal body::

    POST /items HTTP/1.1
    Content-Type: text/plain
    Accept: application/json

    some literal body

Templates are given as a sequence of literal text slices and a sequence of
values that are interpolated between the slices, in source order. This
mirrors tagged template strings: ``compile_template(["GET /items/", ""],
[42])`` describes ``GET /items/42``.
"""

import re

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import DuplicateHeaderError, TemplateFormatError
from .headers import Headers

__all__ = (
    "CompiledRequestTemplate",
    "compile_template",
    "parse_header_block",
    "parse_template",
)


#: Regular expression matching the blank line that separates the header block
#: from the body
_SEPARATOR = re.compile(r"\r?\n\r?\n")

#: Regular expression matching runs of line breaks
_LINE_BREAKS = re.compile(r"(?:\r?\n)+")

#: Regular expression matching a line break followed by indentation
_INDENTED_LINE = re.compile(r"\n\s+")

_REQUEST_LINE = re.compile(r"^\s*(\S+)\s+(/.*?)(?:\s+HTTP/\d+\.\d+)?\s*$")
_HEADER_LINE = re.compile(r"^([^:]+):\s*(.+)$")


@dataclass(frozen=True)
class CompiledRequestTemplate:
    """Parsed form of a request template."""

    method: str
    """The HTTP method of the request."""

    path: str
    """The path of the request as written in the template, including the
    leading slash and the query string, if any.
    """

    headers: Headers
    """The headers of the request, keyed by lowercase header names."""

    raw_body: str = ""
    """The literal body given in the template; empty if there was none."""


def _stringify(value: Any) -> str:
    return "" if value is None else str(value)


def compile_template(
    literals: Union[str, Sequence[Optional[str]]], expressions: Sequence[Any] = ()
) -> tuple[str, str]:
    """Merges the literal slices and the interpolated values of a template
    into the raw header block and the raw body.

    Only the literal slices are searched for the blank line separating the
    header block from the body, and only until the first separator is found.
    Interpolated values never introduce a separator. Everything after the
    first separator is body text, even if it contains more blank lines.

    Parameters:
        literals: the literal slices of the template, or a single string
        expressions: the values to interpolate between the literal slices.
            ``None`` is interpolated as an empty string; anything else is
            converted with ``str()``.

    Returns:
        the raw header block and the raw body. The body is empty if the
        template contains no separator.
    """
    if isinstance(literals, str):
        literals = [literals]

    slices = ["", ""]
    index = 0

    for i in range(max(len(literals), len(expressions))):
        literal = _stringify(literals[i] if i < len(literals) else None)

        if index < 1:
            match = _SEPARATOR.search(literal)
            if match:
                slices[index] += literal[: match.start()]
                index += 1
                literal = literal[match.end() :]

        slices[index] += literal
        if i < len(expressions):
            slices[index] += _stringify(expressions[i])

    return slices[0], slices[1]


def parse_header_block(
    raw_header: str, hostname: str, folding: bool = False
) -> tuple[str, str, Headers]:
    """Parses the request line and the header lines of a request template.

    Parameters:
        raw_header: the raw header block, as returned from
            `compile_template()`
        hostname: the hostname to use for the ``Host`` header when the
            block does not provide one
        folding: whether indented lines continue the previous line. When
            ``False``, indentation is ignored and every line is parsed on its
            own, so multi-line templates may be indented freely.

    Returns:
        the HTTP method, the path and the headers of the request

    Raises:
        TemplateFormatError: when the request line is missing or malformed,
            or when a header line is malformed
        DuplicateHeaderError: when a header name appears more than once
    """
    text = _LINE_BREAKS.sub("\n", raw_header.strip())
    text = _INDENTED_LINE.sub(" " if folding else "\n", text)
    lines = text.split("\n")

    match = _REQUEST_LINE.match(lines[0])
    if not match:
        raise TemplateFormatError("invalid or missing HTTP request line")

    method, path = match.group(1), match.group(2)

    headers = Headers()
    for line in lines[1:]:
        line = line.strip()
        parsed = _HEADER_LINE.match(line)
        if not parsed:
            raise TemplateFormatError(f"invalid structure of header line {line!r}")

        name, value = parsed.groups()
        if name in headers:
            raise DuplicateHeaderError(f"double provision of header {name!r}")

        headers[name] = value

    if not headers.get("host"):
        headers["host"] = hostname

    return method, path, headers


def parse_template(
    literals: Union[str, Sequence[Optional[str]]],
    expressions: Sequence[Any] = (),
    *,
    hostname: str,
    folding: bool = False,
) -> CompiledRequestTemplate:
    """Compiles and parses a request template in one go.

    See `compile_template()` and `parse_header_block()` for the details.
    """
    raw_header, raw_body = compile_template(literals, expressions)
    method, path, headers = parse_header_block(raw_header, hostname, folding)
    return CompiledRequestTemplate(
        method=method, path=path, headers=headers, raw_body=raw_body
    )
