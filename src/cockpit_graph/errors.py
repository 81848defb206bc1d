"""Exceptions raised by the synchronization engine and its collaborators.

Only fatal conditions are modelled as exceptions.  Unresolved asset
references and unknown field types are logged and degrade gracefully.
"""

from __future__ import annotations

class CockpitGraphError(Exception):
    """Base class for every fatal error raised during a sync pass."""

class ConfigurationError(CockpitGraphError):
    """The sync configuration is incomplete or inconsistent.

    Raised before any remote request is made.
    """

class RemoteFetchError(CockpitGraphError):
    """A required remote request failed or returned a malformed payload.

    Aborts the whole pass: a partial graph could carry dangling relation ids.
    """

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path
