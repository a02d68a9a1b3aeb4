"""Failure classification for a single connection."""

import asyncio
import enum


class ErrorKind(enum.Enum):
    TRANSPORT = "transport"  # peer went away or stopped talking
    INTERNAL = "internal"    # anything else, answered with a 500


TRANSPORT_ERRORS = (
    ConnectionError,
    asyncio.IncompleteReadError,
    asyncio.TimeoutError,
    TimeoutError,
)


def classify(exc: BaseException) -> ErrorKind:
    if isinstance(exc, TRANSPORT_ERRORS):
        return ErrorKind.TRANSPORT
    return ErrorKind.INTERNAL
