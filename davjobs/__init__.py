#!/usr/bin/env python
import logging

__version__ = "0.3.0"

from .context import ServerContext
from .helpers import fetch_private_link_url
from .helpers import get_private_link_url
from .jobs import *

# Silence notification of no default logging handler
log = logging.getLogger("davjobs")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "ServerContext",
    "fetch_private_link_url",
    "get_private_link_url",
    "JobState",
    "NetworkJob",
    "SimpleNetworkJob",
    "RequestEtagJob",
    "MkColJob",
    "LsColJob",
    "PropfindJob",
    "ProppatchJob",
    "EntityExistsJob",
    "JsonApiJob",
    "AvatarJob",
    "CheckServerJob",
    "DetermineAuthTypeJob",
]
