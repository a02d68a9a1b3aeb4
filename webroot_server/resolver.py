"""
Path resolution for requested URLs.

Maps a raw URL path onto a file below the document root, or explains why it
must not be served. The order of the checks matters: hidden/traversal
segments are checked on the path as requested, the extension allowlist on the
path after the .html / index.html rewrites, and the allowlist before the
existence check.
"""

import enum
import logging
import os
from http import HTTPStatus
from pathlib import Path
from typing import Union
from urllib.parse import unquote

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".html", ".css", ".js", ".ico", ".png", ".jpg", ".gif"})
INDEX_PAGE = "index.html"


class RejectionKind(enum.Enum):
    INVALID_SEGMENT = "invalid_segment"
    TRAVERSAL = "traversal"
    UNSUPPORTED_TYPE = "unsupported_type"
    NOT_FOUND = "not_found"


class ResolvedResource(BaseModel):
    path: Path
    extension: str


class Rejection(BaseModel):
    kind: RejectionKind
    status_code: int
    status_phrase: str
    detail: str      # sent to the client
    log_detail: str  # written to the request log


def _forbidden(kind: RejectionKind, detail: str, log_detail: str) -> Rejection:
    return Rejection(
        kind=kind,
        status_code=HTTPStatus.FORBIDDEN.value,
        status_phrase=HTTPStatus.FORBIDDEN.phrase,
        detail=detail,
        log_detail=log_detail,
    )


def _is_below(root: str, target: str) -> bool:
    root_key = root.casefold()
    target_key = target.casefold()
    if target_key == root_key:
        return True
    return target_key.startswith(root_key.rstrip(os.sep) + os.sep)


def _strip_query(url_path: str) -> str:
    return url_path.split("?", 1)[0].split("#", 1)[0]


def resolve(document_root: Union[str, Path], requested_url_path: str) -> Union[ResolvedResource, Rejection]:
    """Resolve a requested URL path to a servable file under document_root."""
    url_path = _strip_query(requested_url_path)
    resource_path = INDEX_PAGE if url_path == "/" else url_path[1:] if url_path.startswith("/") else url_path
    resource_path = unquote(resource_path)
    resource_path = resource_path.replace("\\", "/")

    segments = [segment for segment in resource_path.split("/") if segment]

    if any(segment == ".." or segment.startswith(".") or "\x00" in segment for segment in segments):
        return _forbidden(
            RejectionKind.INVALID_SEGMENT,
            "Path contains invalid segments.",
            f"Path contains '..' or hidden segments: {resource_path}",
        )

    root = os.path.realpath(document_root)
    full_path = os.path.realpath(os.path.join(root, *segments))

    if not _is_below(root, full_path):
        return _forbidden(
            RejectionKind.TRAVERSAL,
            "Access to the requested path is forbidden (directory traversal).",
            f"Directory traversal attempt: {requested_url_path} resolved to {full_path}",
        )

    extension = os.path.splitext(full_path)[1].lower()
    if not extension and os.path.isfile(full_path + ".html"):
        full_path += ".html"
        extension = ".html"
    elif os.path.isdir(full_path) and os.path.isfile(os.path.join(full_path, INDEX_PAGE)):
        full_path = os.path.join(full_path, INDEX_PAGE)
        extension = ".html"

    if extension not in ALLOWED_EXTENSIONS:
        return _forbidden(
            RejectionKind.UNSUPPORTED_TYPE,
            f"File type '{extension}' is not supported.",
            f"Unsupported file type: {extension} for {full_path}",
        )

    if not os.path.isfile(full_path):
        parent = os.path.dirname(full_path)
        if logger.isEnabledFor(logging.DEBUG) and os.path.isdir(parent):
            try:
                logger.debug(f"[404 DEBUG] Directory contents of {parent}: {', '.join(sorted(os.listdir(parent)))}")
            except OSError as e:
                logger.debug(f"[404 DEBUG] Could not list {parent}: {e}")
        return Rejection(
            kind=RejectionKind.NOT_FOUND,
            status_code=HTTPStatus.NOT_FOUND.value,
            status_phrase=HTTPStatus.NOT_FOUND.phrase,
            detail=f"The resource '{requested_url_path}' was not found on this server.",
            log_detail=f"Not found: {full_path}",
        )

    return ResolvedResource(path=Path(full_path), extension=extension)
