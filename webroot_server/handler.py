"""
Per-connection request pipeline.

One RequestHandler serves exactly one connection:
AWAIT_REQUEST_LINE -> AWAIT_HEADERS -> RESOLVE -> RESPOND -> CLOSE.
Every exit path, including failures, ends in CLOSE.
"""

import asyncio
import enum
import logging
from http import HTTPStatus
from pathlib import Path
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .errors import ErrorKind, classify
from .mime import mime_for
from .resolver import Rejection, RejectionKind, resolve
from .response import ResponseWriter, WriteOutcome

logger = logging.getLogger(__name__)

# Limits on the request head (request line plus headers)
MAX_HEADER_LINES = 100
MAX_HEAD_BYTES = 16 * 1024


class State(enum.Enum):
    AWAIT_REQUEST_LINE = "await_request_line"
    AWAIT_HEADERS = "await_headers"
    RESOLVE = "resolve"
    RESPOND = "respond"
    CLOSE = "close"


class RawRequest(BaseModel):
    method: str
    path: str
    version: str
    header_lines: List[str] = Field(default_factory=list)


def parse_request_line(request_line: str, header_lines: List[str]) -> Optional[RawRequest]:
    """Split METHOD SP PATH SP VERSION; None when there are fewer than three tokens."""
    parts = request_line.split(" ")
    if len(parts) < 3:
        return None
    return RawRequest(method=parts[0], path=parts[1], version=parts[2], header_lines=header_lines)


def format_peer(peername) -> str:
    if isinstance(peername, tuple) and len(peername) >= 2:
        return f"{peername[0]}:{peername[1]}"
    return str(peername) if peername else "Unknown Client"


class RequestHandler:
    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 document_root: Union[str, Path], request_timeout: float = 10.0):
        self.reader = reader
        self.writer = writer
        self.document_root = Path(document_root)
        self.request_timeout = request_timeout
        self.peer = format_peer(writer.get_extra_info("peername"))
        self.response = ResponseWriter(writer, self.document_root, self.peer)
        self.state = State.AWAIT_REQUEST_LINE

    async def _read_line(self) -> Optional[str]:
        raw = await self.reader.readline()
        if not raw:
            return None
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def _read_head(self) -> Tuple[Optional[str], List[str], bool]:
        """Read the request line and headers; returns (request_line, header_lines, too_large)."""
        self.state = State.AWAIT_REQUEST_LINE
        request_line = await self._read_line()
        if not request_line:
            return request_line, [], False

        logger.info(f"[REQUEST] {self.peer} - {request_line}")

        self.state = State.AWAIT_HEADERS
        header_lines = []
        head_bytes = len(request_line.encode("utf-8"))
        while True:
            header_line = await self._read_line()
            if not header_line:
                return request_line, header_lines, False
            logger.info(f"[HEADER] {self.peer} - {header_line}")
            header_lines.append(header_line)
            head_bytes += len(header_line.encode("utf-8"))
            if len(header_lines) > MAX_HEADER_LINES or head_bytes > MAX_HEAD_BYTES:
                return request_line, header_lines, True

    async def run(self) -> Optional[ErrorKind]:
        """Serve the connection; returns the kind of failure, or None on a clean exchange."""
        logger.info(f"[CONNECTION] Client connected: {self.peer}")
        failure: Optional[ErrorKind] = None

        try:
            failure = await self._process()
        except Exception as e:
            failure = classify(e)
            if failure is ErrorKind.TRANSPORT:
                logger.error(
                    f"[NETWORK ERROR] {self.peer} - {type(e).__name__} during {self.state.value}: {e} "
                    f"(client likely disconnected)"
                )
            else:
                logger.exception(f"[ERROR] {self.peer} - Unexpected error handling client: {type(e).__name__} - {e}")
                await self._send_internal_error()
        finally:
            self.state = State.CLOSE
            logger.info(f"[CONNECTION] Client disconnected: {self.peer}")
            await self._close()

        return failure

    async def _process(self) -> Optional[ErrorKind]:
        # one deadline covers the whole request head, not each line
        request_line, header_lines, too_large = await asyncio.wait_for(
            self._read_head(), timeout=self.request_timeout
        )
        if not request_line:
            logger.error(f"[REQUEST] Empty request line from {self.peer}.")
            return None

        if too_large:
            logger.warning(
                f"[REQUEST] {self.peer} - Request head exceeds {MAX_HEADER_LINES} lines or {MAX_HEAD_BYTES} bytes"
            )
            return await self._reply_error(HTTPStatus.BAD_REQUEST, "Request header too large.")

        request = parse_request_line(request_line, header_lines)
        if request is None:
            return await self._reply_error(HTTPStatus.BAD_REQUEST, "Malformed request line.")

        if request.method != "GET":
            return await self._reply_error(
                HTTPStatus.METHOD_NOT_ALLOWED,
                f"Method {request.method} is not supported. Only GET is allowed.",
            )

        self.state = State.RESOLVE
        result = await asyncio.to_thread(resolve, self.document_root, request.path)

        self.state = State.RESPOND
        if isinstance(result, Rejection):
            tag = "[404]" if result.kind is RejectionKind.NOT_FOUND else "[FORBIDDEN]"
            logger.warning(f"{tag} {self.peer} - {result.log_detail}")
            outcome = await self.response.send_error(result.status_code, result.status_phrase, result.detail)
            return self._failure_for(outcome)

        outcome = await self.response.send_file(result.path, mime_for(result.extension))
        if outcome is WriteOutcome.SENT:
            logger.info(f"[200] {self.peer} - Served: {request.path} from {result.path}")
        return self._failure_for(outcome)

    async def _reply_error(self, status: HTTPStatus, detail: str) -> Optional[ErrorKind]:
        outcome = await self.response.send_error(status.value, status.phrase, detail)
        return self._failure_for(outcome)

    @staticmethod
    def _failure_for(outcome: WriteOutcome) -> Optional[ErrorKind]:
        if outcome is WriteOutcome.TRANSPORT_ERROR:
            return ErrorKind.TRANSPORT
        return None

    async def _send_internal_error(self):
        status = HTTPStatus.INTERNAL_SERVER_ERROR
        try:
            await self.response.send_error(status.value, status.phrase, "An unexpected error occurred on the server.")
        except Exception as e:
            logger.error(f"[ERROR] {self.peer} - Could not send 500 error response: {e}")

    async def _close(self):
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            logger.debug(f"[CONNECTION] {self.peer} - Error while closing: {e}")
