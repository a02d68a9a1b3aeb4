#!/usr/bin/env python3
"""
Run the file server.

Usage: python -m webroot_server [port]
Environment: HOST, WEBROOT, LOG_FILE, MAX_CONNECTIONS, REQUEST_TIMEOUT
"""

import asyncio
import logging
import os
import sys
from typing import List, Optional

from .config import ServerConfig, parse_port
from .logsink import LogSink
from .server import FileServer
from .webroot import initialize_webroot

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    config = ServerConfig.from_env(port=parse_port(argv))

    print(f"Working directory: {os.getcwd()}")
    print(f"Web root configured to: {config.webroot}")
    print(f"Request log file: {config.log_file}")
    print("=== Simple Web Server ===")

    with LogSink(config.log_file):
        initialize_webroot(config.webroot)
        server = FileServer(config)
        try:
            asyncio.run(server.serve_forever())
        except KeyboardInterrupt:
            logger.info("[STATUS] Interrupted, shutting down...")
    return 0


if __name__ == '__main__':
    sys.exit(main())
