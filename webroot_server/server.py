"""
Connection acceptor.

Accepts TCP connections and runs one supervised task per connection. The
number of connections being served at once is capped by a semaphore;
connections beyond the cap wait for a free slot.
"""

import asyncio
import logging
from collections import Counter
from typing import Optional, Set

from .config import ServerConfig
from .errors import ErrorKind
from .handler import RequestHandler, format_peer

logger = logging.getLogger(__name__)


class FileServer:
    def __init__(self, config: ServerConfig):
        self.config = config
        self.port: Optional[int] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._slots: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task] = set()
        self.failures: Counter = Counter()  # ErrorKind -> connections that ended with it

    async def start(self):
        """Bind the listening socket and begin accepting connections."""
        self._slots = asyncio.Semaphore(self.config.max_connections)
        self._server = await asyncio.start_server(self._on_connection, self.config.host, self.config.port)
        self.port = self._server.sockets[0].getsockname()[1]

        webroot = self.config.webroot
        logger.info(f"[STATUS] Server running on http://localhost:{self.port}")
        logger.info(f"[STATUS] Serving files from: {webroot}")
        logger.info(f"[STATUS] Max concurrent connections: {self.config.max_connections}")
        if webroot.is_dir():
            files = sorted(entry.name for entry in webroot.iterdir() if entry.is_file())
            logger.info(f"[STATUS] Webroot contents: {', '.join(files)}")
        else:
            logger.warning("[WARNING] Webroot directory does not exist after initialization attempt!")

    async def _on_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        task = asyncio.current_task()
        self._tasks.add(task)
        try:
            if self._slots.locked():
                peer = format_peer(writer.get_extra_info("peername"))
                logger.warning(f"[CONNECTION] {peer} waiting for a free slot ({self.config.max_connections} in use)")
            async with self._slots:
                handler = RequestHandler(reader, writer, self.config.webroot, self.config.request_timeout)
                failure = await handler.run()
            self._record_outcome(handler.peer, failure)
        finally:
            self._tasks.discard(task)

    def _record_outcome(self, peer: str, failure: Optional[ErrorKind]):
        if failure is None:
            return
        self.failures[failure] += 1
        if failure is ErrorKind.TRANSPORT:
            logger.info(f"[OUTCOME] {peer} - connection abandoned after a transport error")
        else:
            logger.warning(f"[OUTCOME] {peer} - connection ended with an internal error")

    async def serve_forever(self):
        if self._server is None:
            await self.start()
        logger.info("[STATUS] Press Ctrl+C to stop...")
        try:
            await self._server.serve_forever()
        except Exception as e:
            logger.critical(f"[FATAL] Server crashed: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self):
        if self._server is None:
            return

        server, self._server = self._server, None
        server.close()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await server.wait_closed()
        logger.info("[STATUS] Server stopped.")

