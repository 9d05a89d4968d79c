from pytest import mark, raises

from httptag.errors import DuplicateHeaderError, TemplateFormatError
from httptag.template import compile_template, parse_header_block, parse_template


def test_compile_template_without_body():
    assert compile_template(["GET / HTTP/1.0\nAccept: text/plain"]) == (
        "GET / HTTP/1.0\nAccept: text/plain",
        "",
    )
    assert compile_template("GET /") == ("GET /", "")


def test_compile_template_interpolates_values_in_order():
    header, body = compile_template(["GET /items/", "?page=", "\nX-Id: ", ""], [42, 3, "abc"])
    assert header == "GET /items/42?page=3\nX-Id: abc"
    assert body == ""


def test_compile_template_interpolates_none_as_empty_string():
    header, _ = compile_template(["GET /", "\n", ""], [None, None])
    assert header == "GET /\n"


@mark.parametrize("separator", ["\n\n", "\r\n\r\n", "\r\n\n", "\n\r\n"])
def test_compile_template_splits_at_blank_line(separator):
    header, body = compile_template([f"POST /\nX-A: 1{separator}the body"])
    assert header == "POST /\nX-A: 1"
    assert body == "the body"


def test_compile_template_splits_at_first_blank_line_only():
    header, body = compile_template(["POST /\n\nfirst\n\nsecond\n\nthird"])
    assert header == "POST /"
    assert body == "first\n\nsecond\n\nthird"


def test_compile_template_routes_values_after_separator_to_body():
    header, body = compile_template(
        ["PUT /", "\nX-A: ", "\n\nname=", "&more\n\n", ""], ["x", "a", "b", "c"]
    )
    assert header == "PUT /x\nX-A: a"
    assert body == "name=b&more\n\nc"


def test_compile_template_ignores_separators_in_values():
    header, body = compile_template(["GET /\nX-A: ", "\nX-B: 2"], ["1\n\nnot a body"])
    assert header == "GET /\nX-A: 1\n\nnot a body\nX-B: 2"
    assert body == ""


@mark.parametrize(
    "line",
    [
        "GET / HTTP/1.0",
        "GET /          HTTP/1.0",
        "GET /",
        "GET    /",
        "      GET    /  ",
    ],
)
def test_parse_valid_request_lines(line):
    method, path, headers = parse_header_block(line, "localhost")
    assert method == "GET"
    assert path == "/"
    assert dict(headers) == {"host": "localhost"}


@mark.parametrize("line", ["", "something", "/", "GET", "GET path", "GET  HTTP/1.1"])
def test_parse_invalid_request_lines(line):
    with raises(TemplateFormatError):
        parse_header_block(line, "localhost")


def test_parse_request_line_keeps_path_and_query():
    method, path, _ = parse_header_block("DELETE /a/b?c=d HTTP/1.1", "localhost")
    assert method == "DELETE"
    assert path == "/a/b?c=d"


def test_parse_headers():
    _, _, headers = parse_header_block(
        "POST /\r\nContent-Type: application/json\r\n\r\nAccept:text/plain\nX-Empty-Ish:  value ",
        "localhost",
    )
    assert list(headers.items()) == [
        ("content-type", "application/json"),
        ("accept", "text/plain"),
        ("x-empty-ish", "value"),
        ("host", "localhost"),
    ]


def test_parse_headers_keeps_explicit_host():
    _, _, headers = parse_header_block("GET /\nHost: example.com", "localhost")
    assert headers["host"] == "example.com"


@mark.parametrize("line", ["no colon here", "X-Empty:", ": value"])
def test_parse_malformed_header_line(line):
    with raises(TemplateFormatError, match="header line"):
        parse_header_block("GET /\n" + line, "localhost")


@mark.parametrize(
    "names", [("Accept", "Accept"), ("Accept", "accept"), ("X-Token", "x-TOKEN")]
)
def test_parse_duplicate_headers(names):
    block = "GET /\n{0}: a\n{1}: b".format(*names)
    with raises(DuplicateHeaderError):
        parse_header_block(block, "localhost")


def test_parse_indented_template_without_folding():
    block = """
        GET /items HTTP/1.1
        Accept: application/json
            X-Token: secret
    """
    method, path, headers = parse_header_block(block, "localhost")
    assert (method, path) == ("GET", "/items")
    assert headers["accept"] == "application/json"
    assert headers["x-token"] == "secret"


def test_parse_indented_continuation_without_folding_is_rejected():
    with raises(TemplateFormatError):
        parse_header_block("GET /\nX-Long: first part\n  second part", "localhost")


def test_parse_folded_header_lines():
    _, _, headers = parse_header_block(
        "GET /\nX-Long: first part\n  second part\n\tthird part\nAccept: */*",
        "localhost",
        folding=True,
    )
    assert headers["x-long"] == "first part second part third part"
    assert headers["accept"] == "*/*"


def test_parse_template():
    template = parse_template(
        ["POST /items/", " HTTP/1.1\nContent-Type: text/plain\n\nid=", ""],
        [7, 7],
        hostname="example.com",
    )
    assert template.method == "POST"
    assert template.path == "/items/7"
    assert template.headers["content-type"] == "text/plain"
    assert template.headers["host"] == "example.com"
    assert template.raw_body == "id=7"
