"""Pure builders for the canned plaintext response."""

import time
from typing import Optional

STATUS_LINE = b"HTTP/1.1 200 OK"
CONTENT_TYPE = b"Content-Type: text/plain"
CRLF = b"\r\n"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
RECEIVED_MARKER = " - received:\n\n"

RESPONSE_HEADER = STATUS_LINE + CRLF + CONTENT_TYPE + CRLF + CRLF


def format_timestamp(now: Optional[float] = None) -> str:
    """Render a wall-clock time as ``YYYY-MM-DD HH:MM:SS`` in local time."""
    if now is None:
        now = time.time()
    return time.strftime(TIMESTAMP_FORMAT, time.localtime(now))


def build_response(payload: bytes, now: Optional[float] = None) -> bytes:
    """Return the full response echoing ``payload`` byte-for-byte."""
    preamble = (format_timestamp(now) + RECEIVED_MARKER).encode("ascii")
    return RESPONSE_HEADER + preamble + payload
