"""Shared exception types for Courier."""


class CourierError(Exception):
    """Base exception for all Courier errors."""


class ConfigError(CourierError):
    """Configuration is invalid or missing."""


class SignatureError(CourierError):
    """Inbound request signature is missing or does not verify."""


class InteractionError(CourierError):
    """Inbound interaction payload is malformed or unsupported."""


class InputValidationError(CourierError):
    """User input failed validation and should be corrected, not retried."""


class RateLimitedError(CourierError):
    """Requester is still inside their cooldown window."""

    def __init__(self, remaining_seconds: int) -> None:
        super().__init__(f"cooldown active for {remaining_seconds}s")
        self.remaining_seconds = remaining_seconds


class HTTPResponseError(CourierError):
    """Remote service answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {reason}".rstrip(": "))
        self.status_code = status_code
        self.reason = reason


class NetworkError(CourierError):
    """Outbound call failed after the retry policy was applied."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientNetworkError(NetworkError):
    """Timeout or rate-limit failure that survived every retry."""


class PermanentNetworkError(NetworkError):
    """Non-retryable failure, surfaced on the first attempt."""


class PartialDeletionError(CourierError):
    """A single message could not be deleted during a sweep."""

    def __init__(self, message_id: str, cause: Exception) -> None:
        super().__init__(f"failed to delete message {message_id}: {cause}")
        self.message_id = message_id


class AgentError(CourierError):
    """Error from the remote agent backend."""


class ConnectorError(CourierError):
    """Platform connector is unavailable or misused."""
