"""Centralized exception hierarchy for the signage scheduler.

All domain and service exceptions inherit from :class:`SignageError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

An outer adapter (HTTP, CLI) can map these to status codes through
``exc.http_status``.

Hierarchy
---------
::

    SignageError (base: maps to 500)
    ├── ValidationError          (400: bad candidate input)
    ├── NotFoundError            (404: identifier absent from the catalog)
    ├── ConflictError            (409: reserved; overlaps are resolved, not rejected)
    ├── ServiceError             (500: business-logic failure)
    │   └── StorageError         (500: catalog / persistence I/O)
    └── ConfigurationError       (500: missing / invalid config)
"""

from __future__ import annotations


class SignageError(Exception):
    """Base exception for all signage scheduler errors.

    Parameters
    ----------
    message:
        Human-readable description.
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(SignageError):
    """Candidate content or windows are malformed or inconsistent (HTTP 400)."""

    http_status: int = 400


class NotFoundError(SignageError):
    """Referenced content item does not exist (HTTP 404)."""

    http_status: int = 404


class ConflictError(SignageError):
    """Operation conflicts with existing state (HTTP 409)."""

    http_status: int = 409


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(SignageError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class StorageError(ServiceError):
    """Catalog / persistence layer failure (HTTP 500)."""

    http_status: int = 500


class ConfigurationError(SignageError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
