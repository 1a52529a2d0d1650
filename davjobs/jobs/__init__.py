"""
The protocol jobs.  Each job sends one request (or, for the handshake
jobs, a short bounded series of them) and resolves exactly once.
"""

from .api import AvatarJob
from .api import JsonApiJob
from .api import make_circular_avatar
from .base import JobState
from .base import NetworkJob
from .base import RESTART
from .base import SimpleNetworkJob
from .dav import EntityExistsJob
from .dav import LsColJob
from .dav import MkColJob
from .dav import PropfindJob
from .dav import ProppatchJob
from .dav import RequestEtagJob
from .handshake import CheckServerJob
from .handshake import DetermineAuthTypeJob

__all__ = [
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
    "make_circular_avatar",
    "CheckServerJob",
    "DetermineAuthTypeJob",
]
