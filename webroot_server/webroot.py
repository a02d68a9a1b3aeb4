"""Scaffolding for the document root."""

import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

DEFAULT_INDEX_PAGE = (
    "<!DOCTYPE html><html><head><title>Default Page</title></head>"
    "<body><h1>Default Page</h1><p>If you see this, webroot/index.html was missing.</p></body></html>"
)


def initialize_webroot(webroot: Union[str, Path]) -> Path:
    """Create the webroot and a default index.html if they are missing."""
    webroot = Path(webroot)
    if not webroot.is_dir():
        webroot.mkdir(parents=True, exist_ok=True)
        logger.info(f"[INIT] Created webroot at: {webroot}")

    index_path = webroot / "index.html"
    if not index_path.exists():
        index_path.write_text(DEFAULT_INDEX_PAGE, encoding="utf-8")
        logger.info(f"[INIT] Created default index.html in {webroot}")

    return webroot
