"""RPC client type definitions."""

from __future__ import annotations

from enum import Enum


class ConnectionState(Enum):
    """Lifecycle of the backend connection.

    UNSTARTED -> STARTING -> READY -> CLOSED, or STARTING -> ERRORED.
    The next call after CLOSED or ERRORED starts a fresh STARTING epoch.
    """

    UNSTARTED = "unstarted"
    STARTING = "starting"
    READY = "ready"
    CLOSED = "closed"
    ERRORED = "errored"


class BackendClosedError(Exception):
    """The backend process went away while a request was outstanding.

    Used internally to fail pending futures; public calls turn it into an
    empty LookupResult.
    """
