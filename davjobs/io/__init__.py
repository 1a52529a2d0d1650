"""
I/O layer for the job framework.

This module provides the asynchronous transport executing DAVRequest
objects and returning DAVResponse objects.

The I/O layer is intentionally thin - it only handles HTTP transport.
All protocol logic (XML building/parsing) is in davjobs.protocol, the
request/response lifecycle is in davjobs.jobs.

Example:
    from davjobs.io import AsyncIO
    from davjobs.protocol import DAVMethod, DAVRequest

    async with AsyncIO() as io:
        request = DAVRequest(DAVMethod.HEAD, "https://cloud.example.com/status.php")
        response = await io.execute(request)
"""

from .base import AsyncIOProtocol
from .async_ import AsyncIO

__all__ = [
    "AsyncIOProtocol",
    "AsyncIO",
]
