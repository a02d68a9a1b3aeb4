"""
Server configuration.
Values come from the command line (port only) and environment variables.
"""

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_PORT = 8080
WEBROOT_FOLDER_NAME = "webroot"
LOG_FILE_NAME = "server_requests.log"


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    webroot: Path = Field(default_factory=lambda: Path(WEBROOT_FOLDER_NAME))
    log_file: Optional[Path] = Field(default_factory=lambda: Path(LOG_FILE_NAME))
    max_connections: int = Field(default=100, ge=1)
    request_timeout: float = Field(default=10.0, gt=0)

    @field_validator("webroot")
    @classmethod
    def _absolute_webroot(cls, value: Path) -> Path:
        # Document root is fixed for the life of the process
        return Path(os.path.abspath(value))

    @classmethod
    def from_env(cls, port: int = DEFAULT_PORT) -> "ServerConfig":
        """Build a config from environment variables, with the port from the CLI."""
        return cls(
            host=os.getenv('HOST', '127.0.0.1'),
            port=port,
            webroot=Path(os.getenv('WEBROOT', WEBROOT_FOLDER_NAME)),
            log_file=Path(os.getenv('LOG_FILE', LOG_FILE_NAME)),
            max_connections=int(os.getenv('MAX_CONNECTIONS', '100')),
            request_timeout=float(os.getenv('REQUEST_TIMEOUT', '10')),
        )


def parse_port(argv: List[str]) -> int:
    """Port from the first positional argument, DEFAULT_PORT if absent or unparseable."""
    if not argv:
        return DEFAULT_PORT
    try:
        port = int(argv[0])
    except ValueError:
        return DEFAULT_PORT
    if not 0 <= port <= 65535:
        return DEFAULT_PORT
    return port
