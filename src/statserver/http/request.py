"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes of one HTTP/1.x request into an HTTPRequest.

The connection layer has already cut exactly one request out of the TCP
stream (headers through \r\n\r\n plus Content-Length body bytes), so the
parser never waits on I/O. It only validates and decodes.

=============================================================================
REQUEST ANATOMY
=============================================================================

    GET /echo/Hello%20World?x=1 HTTP/1.1\r\n     ← request line
    Host: localhost:8080\r\n                     ← headers
    Connection: keep-alive\r\n
    \r\n                                         ← end of headers
    [body, Content-Length bytes]                 ← usually empty for GET

    method        = "GET"
    path          = "/echo/Hello World"          (percent-decoded)
    query_params  = {"x": ["1"]}
    version       = "HTTP/1.1"

=============================================================================
WHAT COUNTS AS MALFORMED (→ HTTPParseError)
=============================================================================

    400  request line not "METHOD SP TARGET SP HTTP/x.y"
    400  target not origin-form (/...), absolute-form (http://...) or "*"
    400  header line without a colon, or whitespace before the colon
    400  Content-Length not a non-negative integer, or conflicting values
    413  request larger than max_request_size
    501  Transfer-Encoding present (chunked bodies are not supported)
    505  any version other than HTTP/1.0 and HTTP/1.1

Unknown methods are NOT a parse error. "BREW /pot HTTP/1.1" parses fine
and the router answers 404 like any other unmatched request.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import parse_qs, urlsplit, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status code the server should answer with (400 by default).
    The server replies once and closes the connection, since the byte
    stream can no longer be trusted to be aligned on a request boundary.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method: Request method exactly as sent ("GET", "POST", ...).
        path: Percent-decoded path without the query string.
        version: "HTTP/1.1" or "HTTP/1.0".
        headers: Header name → value, names lowercased.
        query_params: Parsed query string, name → list of values.
        body: Raw body bytes (Content-Length long).
        path_params: Filled in by the router on a parametric match.
        client_address: (ip, port) of the peer.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple = ("", 0)

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Should the connection stay open after this request?

            HTTP/1.1:  open unless "Connection: close"
            HTTP/1.0:  closed unless "Connection: keep-alive"

        The header may carry a list ("keep-alive, Upgrade"), so tokens are
        compared individually.
        """
        tokens = {
            token.strip().lower()
            for token in self.headers.get("connection", "").split(",")
        }

        if self.version == "HTTP/1.1":
            return "close" not in tokens
        return "keep-alive" in tokens

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or default."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        raw bytes
            │
            ├── 1. size check                  → 413
            ├── 2. split head / body at CRLFCRLF
            ├── 3. request line                → 400 / 505
            ├── 4. headers                     → 400
            ├── 5. framing (Content-Length,
            │      Transfer-Encoding)          → 400 / 501
            └── 6. HTTPRequest(...)

    One parser instance is shared by every connection; it keeps no state
    between calls.
    """

    # RFC 7230 "token" characters for the method
    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:\s]+):[ \t]*(.*?)[ \t]*$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Request bytes, headers and body, as cut by Connection.
            client_address: Peer (ip, port), copied onto the request.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: The request is malformed or unsupported.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        if "transfer-encoding" in headers:
            raise HTTPParseError(
                f"Unsupported Transfer-Encoding: {headers['transfer-encoding']}",
                status_code=501,
            )

        content_length = self._content_length(headers)
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple:
        """
        Split "METHOD SP TARGET SP VERSION" into its parts.

        Returns:
            (method, decoded path, query params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:100]!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        if target == "*":
            return method, "*", {}, version

        if not target.startswith("/") and "://" not in target:
            raise HTTPParseError(f"Invalid request target: {target[:100]!r}")

        if target.startswith("/"):
            # Origin-form: ";" and a leading "//" are ordinary path characters
            raw_path, _, query = target.partition("?")
        else:
            # Absolute-form ("http://host/path") keeps only the path part
            parts = urlsplit(target)
            raw_path, query = parts.path, parts.query

        path = unquote(raw_path) or "/"
        query_params = parse_qs(query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", ". Obsolete line folding
        (a line starting with SP/HTAB) continues the previous value.
        """
        headers: Dict[str, str] = {}
        current_name: Optional[str] = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is None:
                    raise HTTPParseError("Header continuation without a header")
                headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Malformed header line: {line[:100]!r}")

            name, value = match.groups()
            name = name.lower()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _content_length(self, headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0

        # "5, 5" is legal (a repeated identical header); "5, 7" is not
        values = {value.strip() for value in raw.split(",")}
        if len(values) != 1:
            raise HTTPParseError(f"Conflicting Content-Length: {raw}")

        value = values.pop()
        if not value.isdigit():
            raise HTTPParseError(f"Invalid Content-Length: {value!r}")
        return int(value)


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0),
    max_size: int = 1024 * 1024,
) -> HTTPRequest:
    """One-shot helper around RequestParser.parse()."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
