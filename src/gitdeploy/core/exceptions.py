"""Custom exceptions for gitdeploy."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gitdeploy.release.models import TransactionResult


class GitDeployError(Exception):
    """Base exception for all gitdeploy errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigError(GitDeployError):
    """Configuration-related errors."""

    pass


class GatewayConnectionError(GitDeployError):
    """Raised when a connection to a target host cannot be established."""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.host = host


class RemoteCommandFailure(GitDeployError):
    """A command issued through a gateway did not succeed."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        host: str | None = None,
        exit_status: int | None = None,
        stdout: str = "",
        stderr: str = "",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.command = command
        self.host = host
        self.exit_status = exit_status
        self.stdout = stdout
        self.stderr = stderr


class TagResolutionFailure(RemoteCommandFailure):
    """Listing or parsing release tags failed."""

    pass


class CompensationFailure(GitDeployError):
    """A compensating action failed while rolling back a transaction."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"Compensation for step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause


class TransactionRolledBack(GitDeployError):
    """A transaction failed and its completed steps were compensated."""

    def __init__(self, result: "TransactionResult"):
        failure = result.failure
        message = f"Transaction '{result.transaction}' failed at step '{result.failed_step}': {failure}"
        if result.compensation_failures:
            message = f"{message} ({len(result.compensation_failures)} compensation(s) also failed)"
        super().__init__(message)
        self.result = result

    @property
    def failure(self) -> BaseException | None:
        """The step failure that triggered the rollback."""
        return self.result.failure

    @property
    def compensation_failures(self) -> list[CompensationFailure]:
        """Compensations that failed during the rollback."""
        return self.result.compensation_failures
