"""Application-level exception types for minicode."""

from __future__ import annotations


class MinicodeError(Exception):
    """Base exception for minicode."""


class ConfigurationError(MinicodeError):
    """Base exception for configuration and startup validation errors."""


class ModelNotConfiguredError(ConfigurationError):
    """Raised when no language model is available for a provider."""


class TurnRequestError(MinicodeError, ValueError):
    """Raised when a turn request is malformed (for example an empty prompt)."""


class TurnAbortedError(MinicodeError):
    """Raised by model streams when a turn is cancelled cooperatively."""


class SessionError(MinicodeError):
    """Base exception for session persistence errors."""


class SessionNotFoundError(SessionError):
    """Raised when a session file does not exist."""


class SessionExistsError(SessionError):
    """Raised when creating a session whose id is already taken."""


class SessionCorruptError(SessionError):
    """Raised when a session file does not contain valid JSON."""


class SessionSchemaError(SessionError):
    """Raised when a session document fails schema validation."""


class ArtifactStoreError(MinicodeError):
    """Raised when an artifact cannot be written."""


class PluginLoadError(MinicodeError):
    """Raised when one plugin fails to load; tagged with the failing stage."""

    def __init__(self, reference: str, stage: str, message: str) -> None:
        self.reference = reference
        self.stage = stage
        super().__init__(f"Plugin load failed [{stage}] {reference}: {message}")


class PluginComposeError(MinicodeError):
    """Raised when plugin contributions conflict with each other or with builtins."""

    def __init__(self, reference: str, message: str) -> None:
        self.reference = reference
        self.stage = "compose"
        super().__init__(f"Plugin compose failed [compose] {reference}: {message}")
