"""Centralized exception hierarchy for the grow engine.

All engine exceptions inherit from :class:`GrowEngineError` so that callers
can catch a single base class when they need a broad safety net, yet still
match on specific subclasses where narrower handling is appropriate.

Failures are caught at their own boundary (per device read, per dispatched
action, per room inside a loop tick, per scheduled job). Only errors of
caller-facing calls reach the caller: :class:`ConfigurationError` while
building the engine, :class:`ConfigurationMissing` for unknown ids and
:class:`ExternalServiceError` from reading store queries.

Hierarchy
---------
::

    GrowEngineError
    ├── ValidationError
    │   └── ValidationFailure        (reading rejected, dropped silently)
    ├── NotFoundError
    │   └── ConfigurationMissing     (room / device / alert absent => no-op)
    ├── ServiceError
    │   └── ExternalServiceError     (reading store query failure)
    ├── DeviceError
    │   ├── DeviceUnavailable        (transient read failure, retried next tick)
    │   └── DispatchError            (command send failed or timed out)
    └── ConfigurationError           (invalid engine configuration)
"""

from __future__ import annotations


class GrowEngineError(Exception):
    """Base exception for all grow engine errors.

    Parameters
    ----------
    message:
        Human-readable description.
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Input errors ─────────────────────────────────────────────────────


class ValidationError(GrowEngineError):
    """Caller supplied invalid or incomplete input."""


class ValidationFailure(ValidationError):
    """A sensor sample failed quality validation and must be dropped."""


class NotFoundError(GrowEngineError):
    """Requested entity does not exist."""


class ConfigurationMissing(NotFoundError):
    """A room, device or alert referenced by id is absent."""


# ── Runtime errors ───────────────────────────────────────────────────


class ServiceError(GrowEngineError):
    """Business-logic failure in a service method."""


class ExternalServiceError(ServiceError):
    """Failure of an external collaborator (advisor, persistence)."""


class DeviceError(GrowEngineError):
    """Hardware communication failure."""


class DeviceUnavailable(DeviceError):
    """A device could not be read this cycle."""


class DispatchError(DeviceError):
    """A device command failed or timed out."""


class ConfigurationError(GrowEngineError):
    """Missing or invalid engine configuration."""
