"""Exception types raised by the store and the backup routine."""

from __future__ import annotations


class OdDbError(Exception):
    """Base class for od-db errors."""


class StoreIOError(OdDbError):
    """A filesystem or parse failure, wrapped with the failing operation."""


class PolicyViolation(OdDbError):
    """An operation refused by the environment policy (e.g. drop in production)."""
