"""Error taxonomy for the Integration Engine.

Every failure raised by the engine derives from IntegrationEngineError, so
callers can catch the whole family at a boundary (CLI, UI adapter) and still
branch on the concrete class deeper in the stack.

Hierarchy:
    IntegrationEngineError
    ├── ValidationError          client-side pre-check failed, no request made
    ├── InvalidCredentials       backend reports the credentials as invalid
    ├── NetworkError             transport failure, no HTTP response
    ├── Timeout                  request exceeded its deadline
    ├── ServerError              non-2xx response or undecodable body
    ├── ConflictError            duplicate/idempotency conflict on save
    ├── Unauthenticated          no usable session, or backend rejected it
    ├── CatalogUnavailable       backend returned no providers
    ├── AdapterNotFoundError     no adapter registered for a provider id
    └── ConfigError              settings or session file problems
"""

from enum import Enum


class Step(Enum):
    """Flow step a failure belongs to."""
    LOADING = "loading"
    TESTING = "testing"
    SAVING = "saving"
    SYNCING = "syncing"
    DISCONNECTING = "disconnecting"


class IntegrationEngineError(Exception):
    """Base class for all Integration Engine errors."""

    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        step: Step | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.step = step

    def at_step(self, step: Step) -> "IntegrationEngineError":
        """Tag the error with the step it failed in, keeping an earlier tag."""
        if self.step is None:
            self.step = step
        return self

    def hint(self) -> str:
        return ""

    def user_message(self) -> str:
        """Operator-facing message naming the failing step."""
        prefix = f"{self.step.value.capitalize()} failed" if self.step else "Failed"
        text = f"{prefix}: {self.message}"
        hint = self.hint()
        if hint:
            text = f"{text} {hint}"
        return text


class ValidationError(IntegrationEngineError):
    """Raised when credential input fails a client-side check."""

    def hint(self) -> str:
        return "Please correct the highlighted field."


class InvalidCredentials(IntegrationEngineError):
    """Raised when the backend says the credentials are not valid."""

    def hint(self) -> str:
        return "Please re-enter your credentials."


class NetworkError(IntegrationEngineError):
    """Raised when a request fails without an HTTP response."""

    retryable = True

    def hint(self) -> str:
        return "Check your connection and try again."


class Timeout(IntegrationEngineError):
    """Raised when a request does not complete within its timeout."""

    retryable = True

    def hint(self) -> str:
        return "The server took too long to respond. Try again."


class ServerError(IntegrationEngineError):
    """Raised on a non-2xx response from the backend."""

    def hint(self) -> str:
        return "If this keeps happening, contact support."


class ConflictError(IntegrationEngineError):
    """Raised when the backend rejects a save as a duplicate."""


class Unauthenticated(IntegrationEngineError):
    """Raised when no valid session is available."""

    def hint(self) -> str:
        return "Please log in again."


class CatalogUnavailable(IntegrationEngineError):
    """Raised when the backend returns no connectable providers."""

    retryable = True


class AdapterNotFoundError(IntegrationEngineError):
    """Raised when no adapter is registered for a provider."""


class ConfigError(IntegrationEngineError):
    """Raised when there is an error loading or saving configuration."""
