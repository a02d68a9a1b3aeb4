"""
Response serialization.

Every response is written as: status line, Content-Type, Content-Length,
Connection: close, blank line, body. Headers are flushed before the body.
"""

import asyncio
import enum
import logging
from pathlib import Path
from typing import Dict, Tuple, Union

from pydantic import BaseModel, Field

from .errors import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)

ERROR_PAGE = "error.html"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


class HttpResponse(BaseModel):
    status_code: int
    status_phrase: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    def head_bytes(self) -> bytes:
        lines = [f"HTTP/1.1 {self.status_code} {self.status_phrase}\r\n"]
        for key, value in self.headers.items():
            lines.append(f"{key}: {value}\r\n")
        lines.append("\r\n")
        return "".join(lines).encode("iso-8859-1")

    def to_bytes(self) -> bytes:
        return self.head_bytes() + self.body


class WriteOutcome(enum.Enum):
    SENT = "sent"
    SKIPPED = "skipped"                  # connection was already closing
    FILE_ERROR = "file_error"            # file could not be read, nothing sent
    TRANSPORT_ERROR = "transport_error"  # peer went away mid-write


def build_response(status_code: int, status_phrase: str, content_type: str, body: bytes) -> HttpResponse:
    return HttpResponse(
        status_code=status_code,
        status_phrase=status_phrase,
        headers={
            "Content-Type": content_type,
            "Content-Length": str(len(body)),
            "Connection": "close",
        },
        body=body,
    )


def inline_error_page(status_code: int, status_phrase: str, detail: str) -> str:
    return (
        f"<html><head><title>{status_code} {status_phrase}</title></head>"
        f"<body><h1>{status_code} {status_phrase}</h1><p>{detail}</p></body></html>"
    )


def render_error_page(document_root: Union[str, Path], status_code: int, status_phrase: str,
                      detail: str) -> Tuple[str, bool]:
    """Render the error body; returns (html, True) when error.html was used."""
    template_path = Path(document_root) / ERROR_PAGE
    if template_path.is_file():
        try:
            template = template_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"[ERROR] Could not load/parse custom error page '{template_path}': {e}")
        else:
            html = (template.replace("{{ERROR_CODE}}", str(status_code))
                            .replace("{{ERROR_MESSAGE}}", status_phrase)
                            .replace("{{ERROR_DETAIL}}", detail))
            return html, True

    return inline_error_page(status_code, status_phrase, detail), False


class ResponseWriter:
    """Writes one response onto a client connection."""

    def __init__(self, writer: asyncio.StreamWriter, document_root: Union[str, Path], peer: str = "Unknown Client"):
        self.writer = writer
        self.document_root = Path(document_root)
        self.peer = peer

    async def _emit(self, response: HttpResponse):
        self.writer.write(response.head_bytes())
        await self.writer.drain()

        self.writer.write(response.body)
        await self.writer.drain()

    async def send_file(self, path: Union[str, Path], mime_type: str) -> WriteOutcome:
        try:
            body = await asyncio.to_thread(Path(path).read_bytes)
        except OSError as e:
            logger.error(f"[FILE ERROR] {self.peer} - Could not read file {path}: {e}")
            return WriteOutcome.FILE_ERROR

        try:
            await self._emit(build_response(200, "OK", mime_type, body))
        except TRANSPORT_ERRORS as e:
            logger.error(f"[FILE ERROR] {self.peer} - Could not send file {path} (client likely disconnected): {e}")
            return WriteOutcome.TRANSPORT_ERROR

        return WriteOutcome.SENT

    async def send_error(self, status_code: int, status_phrase: str, detail: str) -> WriteOutcome:
        html, used_template = await asyncio.to_thread(
            render_error_page, self.document_root, status_code, status_phrase, detail
        )
        response = build_response(status_code, status_phrase, HTML_CONTENT_TYPE, html.encode("utf-8"))

        if self.writer.is_closing():
            logger.error(
                f"[ERROR RESPONSE] {self.peer} - Client disconnected or stream not writable "
                f"before sending {status_code} for '{detail}'."
            )
            return WriteOutcome.SKIPPED

        try:
            await self._emit(response)
        except TRANSPORT_ERRORS as e:
            logger.error(
                f"[ERROR RESPONSE] {self.peer} - Network error sending {status_code} for '{detail}' "
                f"(client likely disconnected): {e}"
            )
            return WriteOutcome.TRANSPORT_ERROR

        page = "custom page" if used_template else "inline"
        logger.info(f"[RESPONSE] {self.peer} - Sent {status_code} {status_phrase} ({page}) for: {detail}")
        return WriteOutcome.SENT
