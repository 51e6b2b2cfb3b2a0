"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client (an asyncio StreamReader/StreamWriter pair) with
an API that reads whole HTTP requests and writes whole responses.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

    Client sends:                       Server may receive:
        GET / HTTP/1.1\r\n                  read() → "GET / HT"
        Host: x\r\n                         read() → "TP/1.1\r\nHost: x\r\n\r\nGET /hea"
        \r\n                                read() → "lth HTTP/1.1\r\n\r\n"
        GET /health HTTP/1.1\r\n
        \r\n

Reads are accumulated in a buffer and cut at protocol delimiters:

    1. Read until \r\n\r\n (end of headers)
    2. Take Content-Length from the headers
    3. Read until the buffer holds that many body bytes
    4. Cut the request off the front of the buffer; the surplus stays for
       the next read_request() call (pipelining)

=============================================================================
TIMEOUTS
=============================================================================

    first request        config.timeout              → TimeoutError (408)
    later requests       config.keep_alive_timeout   → None (silent close)

Each timeout covers reading one whole request, not a single read() call, so
a client trickling one byte per second can't hold a connection forever.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ─┐
               ▲                                               │
               └───────────────────────────────────────────────┘
               │
               ▼
            CLOSING ──► CLOSED

=============================================================================
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..http.request import HTTPParseError

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and shutdown bookkeeping."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        reader: Stream the request bytes arrive on.
        writer: Stream responses are written to.
        id: Short random id used as a log prefix.
        state: Current ConnectionState.
        requests_handled: Requests read so far on this connection.

    Usage:
        async with Connection(reader, writer) as conn:
            data = await conn.read_request()
            await conn.send_response(b"HTTP/1.1 200 OK\\r\\n...")
    """

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    @property
    def address(self) -> tuple:
        """Peer (ip, port), or ("", 0) when the transport doesn't know."""
        peer = self.writer.get_extra_info("peername")
        if not peer:
            return ("", 0)
        return tuple(peer[:2])

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        return time.monotonic() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    async def read_request(self) -> Optional[bytes]:
        """
        Read exactly one complete HTTP request.

        Returns:
            The request bytes, or None when the client closed the
            connection or an idle keep-alive connection timed out.

        Raises:
            TimeoutError: The first request didn't arrive within timeout.
            HTTPParseError: 431 when no header terminator shows up within
                max_request_size, 413 when Content-Length pushes the request
                past it, 400 for an unreadable Content-Length.
        """
        self.state = ConnectionState.READING
        first = self.requests_handled == 0
        timeout = self.timeout if first else self.keep_alive_timeout

        try:
            data = await asyncio.wait_for(self._read_one(), timeout)
        except asyncio.TimeoutError:
            if not first:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout") from None

        if data is not None:
            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
        return data

    async def _read_one(self) -> Optional[bytes]:
        # Step 1: accumulate until the end of the headers
        while b"\r\n\r\n" not in self._buffer:
            if len(self._buffer) > self.max_request_size:
                raise HTTPParseError(
                    "Request headers too large",
                    status_code=431,
                )
            chunk = await self._recv()
            if not chunk:
                if self._buffer:
                    logger.debug(f"[{self.id}] Client closed mid-headers")
                return None
            self._buffer += chunk

        header_end = self._buffer.find(b"\r\n\r\n")
        body_start = header_end + 4
        if header_end > self.max_request_size:
            raise HTTPParseError("Request headers too large", status_code=431)

        # Step 2: the body, if any
        content_length = self._parse_content_length(self._buffer[:header_end])
        request_end = body_start + content_length

        if request_end > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {request_end} bytes",
                status_code=413,
            )

        while len(self._buffer) < request_end:
            chunk = await self._recv()
            if not chunk:
                # Hand over what arrived; the parser reports the short body
                break
            self._buffer += chunk

        # Step 3: cut one request off the front, keep the rest
        request_data = self._buffer[:request_end]
        self._buffer = self._buffer[request_end:]
        return request_data

    async def _recv(self) -> bytes:
        """One read; a reset or aborted connection reads as EOF."""
        try:
            return await self.reader.read(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError, ConnectionAbortedError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Find Content-Length before the request is parsed.

        Only framing matters here; RequestParser re-validates the value.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n")[1:]:
            if line.startswith("content-length:"):
                value = line.split(":", 1)[1].split(",")[0].strip()
                if not value.isdigit():
                    raise HTTPParseError(f"Invalid Content-Length: {value!r}")
                return int(value)
        return 0

    async def send_response(self, data: bytes) -> bool:
        """
        Write a whole response and wait until it's flushed to the kernel.

        Returns:
            True on success, False if the client went away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.writer.write(data)
            await self.writer.drain()
            return True
        except (ConnectionResetError, BrokenPipeError, OSError) as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self) -> None:
        self.state = ConnectionState.KEEP_ALIVE

    async def close(self) -> None:
        """
        Close gracefully.

        1. write_eof(): tell the client we're done sending
        2. discard whatever the client still sends, for up to 0.5s, so the
           kernel doesn't answer unread data with a RST that could destroy
           the response in flight
        3. close the transport
        """
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return
        self.state = ConnectionState.CLOSING

        try:
            if self.writer.can_write_eof() and not self.writer.is_closing():
                self.writer.write_eof()
                await asyncio.wait_for(self._discard_input(), 0.5)
        except (asyncio.TimeoutError, OSError):
            pass

        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    async def _discard_input(self) -> None:
        while await self.reader.read(1024):
            pass

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False
