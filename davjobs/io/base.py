"""
Abstract I/O protocol definition.

This module defines the interface that all transports must follow.  The
job layer only ever talks to a transport through this interface.
"""

from typing import Protocol, runtime_checkable

from davjobs.protocol.types import DAVRequest, DAVResponse


@runtime_checkable
class AsyncIOProtocol(Protocol):
    """
    Protocol defining the asynchronous I/O interface.

    Implementations must provide a way to execute DAVRequest objects
    and return DAVResponse objects asynchronously.  A request that gets
    no response at all must raise davjobs.lib.error.TransportError.
    """

    async def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a request and return the response.

        Args:
            request: The DAVRequest to execute

        Returns:
            DAVResponse with status, headers, body and final URL
        """
        ...

    async def close(self) -> None:
        """Close any resources (e.g., HTTP session)."""
        ...
