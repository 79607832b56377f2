"""Exception hierarchy for the remote loader.

Stage failures inside a pipeline run travel as outcome values (see
``remote_loader.loader.models``). The exceptions here are raised at the host
seams and by configuration loading, and are converted into outcome values by
the stage that calls the host.
"""

from __future__ import annotations

__all__ = [
    "RemoteLoaderError",
    "ConfigError",
    "HttpTransportError",
    "ActivationError",
]


class RemoteLoaderError(RuntimeError):
    """Base exception for remote loader failures."""


class ConfigError(RemoteLoaderError):
    """Raised when configuration inputs are missing or invalid."""


class HttpTransportError(RemoteLoaderError):
    """Raised by an HttpClient when the request never produced an HTTP response."""


class ActivationError(RemoteLoaderError):
    """Raised by a CodeActivator when the payload could not be executed."""
