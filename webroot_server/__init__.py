"""
Minimal single-host HTTP/1.1 file server.
Serves files from a sandboxed document root over raw TCP connections.
"""

__version__ = "0.1.0"
