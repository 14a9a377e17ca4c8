"""HTTP server hosting the runner endpoint."""

from offcron.server.app import OffcronServer, create_app
from offcron.server.runner import ServerRunner

__all__ = [
    "OffcronServer",
    "ServerRunner",
    "create_app",
]
