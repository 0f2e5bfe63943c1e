from __future__ import annotations


class KubeCopilotError(Exception):
    """Base exception for this project."""


class ConfigError(KubeCopilotError):
    """Raised when configuration is invalid or incomplete."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path


class OracleError(KubeCopilotError):
    """The reasoning oracle could not produce a response."""


class OracleUnavailableError(OracleError):
    pass


class OracleCancelledError(OracleError):
    pass


class PlanningFailure(KubeCopilotError):
    """Planning aborted for the current turn (oracle transport or cancellation)."""


class UnrecognizedRequest(KubeCopilotError):
    """The fallback planner matched no known request pattern."""

    def __init__(self, request_text: str) -> None:
        super().__init__("Unable to understand request")
        self.request_text = request_text


class InvalidArgumentsError(KubeCopilotError):
    """Tool-call arguments are missing or have the wrong shape."""


class BackendError(KubeCopilotError):
    """The cluster backend rejected or failed an operation."""


class ResourceNotFoundError(BackendError):
    pass


class ResourceConflictError(BackendError):
    pass
