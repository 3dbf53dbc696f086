"""
Common exception classes for swarm-loopguard.

This module defines the exception hierarchy used throughout the detector.
Recoverable errors (lock timeouts, embedding timeouts, corrupt state) are
absorbed by the engine; the remaining ones reach the CLI, which maps
``exit_code`` to the process exit status.
"""

from __future__ import annotations

from typing import Any


class LoopGuardError(Exception):
    """Base exception class for all swarm-loopguard errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        exit_code: int | None = None,
        **kwargs: Any,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error details
            exit_code: Optional process exit code hint for the CLI
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.exit_code = exit_code or 1
        for key, value in (kwargs or {}).items():
            setattr(self, key, value)

    def to_dict(self) -> dict[str, Any]:
        error_dict: dict[str, Any] = {
            "message": self.message,
            "type": self.__class__.__name__,
            "details": self.details,
        }

        # Include any additional attributes that were set via kwargs
        for attr_name, value in vars(self).items():
            if attr_name.startswith("_") or attr_name in (
                "message",
                "details",
                "exit_code",
            ):
                continue
            error_dict[attr_name] = value

        return {"error": error_dict}


class ConfigurationError(LoopGuardError):
    """Raised when configuration cannot be loaded or is inconsistent."""

    def __init__(
        self,
        message: str = "Configuration error",
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, details, exit_code=1, **kwargs)


class InvalidRequestError(LoopGuardError):
    """Raised when the hook request is not a well-formed detection request."""

    def __init__(
        self,
        message: str = "Invalid detection request",
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, details, exit_code=2, **kwargs)


class StateStoreError(LoopGuardError):
    """Raised when persisted agent state cannot be read or written."""

    def __init__(
        self,
        message: str = "State store operation failed",
        agent_id: str | None = None,
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, details, **kwargs)
        self.agent_id = agent_id


class CorruptStateError(StateStoreError):
    """Raised when a persisted record exists but cannot be decoded."""

    def __init__(
        self,
        message: str = "Persisted agent state is corrupt",
        agent_id: str | None = None,
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, agent_id=agent_id, details=details, **kwargs)


class DuplicateTurnError(StateStoreError):
    """Raised when a turn does not advance the agent's sequence number."""

    def __init__(
        self,
        sequence_number: int,
        last_sequence_number: int,
        agent_id: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            f"Turn {sequence_number} does not advance past turn {last_sequence_number}",
            agent_id=agent_id,
            details={
                "sequence_number": sequence_number,
                "last_sequence_number": last_sequence_number,
            },
            **kwargs,
        )
        self.sequence_number = sequence_number
        self.last_sequence_number = last_sequence_number


class LockTimeoutError(LoopGuardError):
    """Raised when the per-agent state lock cannot be acquired in time."""

    def __init__(
        self,
        agent_id: str,
        timeout_seconds: float,
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for state lock of agent '{agent_id}'",
            details,
            **kwargs,
        )
        self.agent_id = agent_id
        self.timeout_seconds = timeout_seconds


class InvariantViolationError(LoopGuardError):
    """Raised when state about to be persisted breaks a structural invariant."""

    def __init__(
        self,
        message: str = "Internal invariant violated",
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, details, exit_code=1, **kwargs)


class EmbeddingProviderError(LoopGuardError):
    """Raised when an embedding provider fails to produce a vector."""

    def __init__(
        self,
        message: str = "Embedding provider failed",
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, details, **kwargs)
        self.provider_name = provider_name


class EmbeddingUnavailableError(EmbeddingProviderError):
    """Raised when the embedding capability is absent (library or model missing)."""

    def __init__(
        self,
        message: str = "Embedding provider is unavailable",
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, provider_name=provider_name, details=details, **kwargs)


class EmbeddingTimeoutError(EmbeddingProviderError):
    """Raised when computing an embedding exceeds its time budget."""

    def __init__(
        self,
        timeout_seconds: float,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            f"Embedding computation exceeded {timeout_seconds}s",
            provider_name=provider_name,
            details=details,
            **kwargs,
        )
        self.timeout_seconds = timeout_seconds
