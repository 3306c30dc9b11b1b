#!/usr/bin/env python3
"""
Error types for finsync.

Remote failures are raised by data-source adapters as FetchError and captured by
the engine into result values; nothing above the engine sees them as exceptions.
"""


class FinsyncError(Exception):
    """Base class for all finsync errors."""


class ConfigurationError(FinsyncError, ValueError):
    """Configuration could not be loaded or failed validation."""


class FetchError(FinsyncError):
    """A request to the remote system of record failed."""

    def __init__(self, entity: str, message: str):
        super().__init__(f"{entity}: {message}")
        self.entity = entity
        self.message = message


class RemoteWriteError(FinsyncError):
    """Pushing a local mutation to the remote system of record failed."""

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table
        self.message = message
