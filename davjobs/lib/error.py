#!/usr/bin/env python
import logging
import os
from collections import defaultdict
from typing import Dict
from typing import Optional

from davjobs import __version__

## Environmental variables prepended with "DAVJOBS_" are used both for
## debug purposes and for connection parameters (see davjobs.config)
## one of DEBUG_PDB, DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("DAVJOBS_DEBUGMODE")
if not debugmode:
    if "dev" in __version__ or __version__ == "(unknown)":
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("davjobs")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)


def weirdness(*reasons):
    reason = " : ".join([str(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")
    if debugmode == "DEBUG_PDB":
        log.error(f"Dropping into debugger due to {reason}")
        import pdb

        pdb.set_trace()


def assert_(condition: object) -> None:
    try:
        assert condition
    except AssertionError:
        if debugmode == "PRODUCTION":
            log.error("Deviation from expectations found.", exc_info=True)
        elif debugmode == "DEBUG_PDB":
            log.error("Deviation from expectations found.  Dropping into debugger")
            import pdb

            pdb.set_trace()
        else:
            raise


class DAVError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"
    status: int = 0

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason
        if status is not None:
            self.status = status
        super().__init__(self.url, self.reason, self.status)

    def __str__(self) -> str:
        return "%s at '%s', status %s, reason %s" % (
            self.__class__.__name__,
            self.url,
            self.status,
            self.reason,
        )


class TransportError(DAVError):
    """
    No response was received at all: connection failure, too many
    redirects, a refused redirect.  status is always 0.
    """

    pass


class ProtocolError(DAVError):
    """
    A response was received, but it was not what the job expected:
    an unexpected status code, wrong content type or unparseable body.
    """

    pass


class AuthorizationError(DAVError):
    """
    The server answered 401 or 403 and the job did not opt out of the
    credential failure handling.  The url property will contain the url
    in question, the reason property the excuse the server sent.
    """

    pass


class JobTimeoutError(DAVError):
    """The job's timer expired before a response was received"""

    reason = "timeout"


class JobAbortedError(DAVError):
    """The owner of the job aborted it"""

    reason = "aborted"


class ValidationError(ProtocolError):
    pass


class InstanceNotFoundError(ProtocolError):
    reason = "instance not found"


class PropfindError(ProtocolError):
    pass


class ProppatchError(ProtocolError):
    pass


class MkcolError(ProtocolError):
    pass


class LsColError(ProtocolError):
    pass


class EtagError(ProtocolError):
    pass


exception_by_method: Dict[str, type] = defaultdict(lambda: ProtocolError)
for method in (
    "propfind",
    "proppatch",
    "mkcol",
):
    exception_by_method[method] = locals()[method[0].upper() + method[1:] + "Error"]
