"""Error types for kubeutil.

Command execution failures carry the command line and the captured output.
Token failures are split into retryable errors (absorbed by the poller) and
the terminal error raised once the caller's deadline or cancellation fires.
"""

from __future__ import annotations


class KubeutilError(Exception):
    """Base error class for kubeutil errors."""


class InvalidCommandError(KubeutilError, ValueError):
    """Command request has neither a path nor arguments."""


class CommandError(KubeutilError):
    """External command exited non-zero or could not be started."""

    def __init__(
        self,
        command: str,
        cause: BaseException,
        stdout: str = "",
        stderr: str = "",
        returncode: int | None = None,
    ):
        self.command = command
        self.cause = cause
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(f"{command!r} failed: {self.diagnostic}: {cause}")

    @property
    def diagnostic(self) -> str:
        """stderr followed by stdout, trimmed."""
        return (self.stderr + "\n" + self.stdout).strip()


class ApplyError(KubeutilError):
    """kubectl apply failed."""


class ConfigError(KubeutilError):
    """Invalid configuration value."""


class TokenError(KubeutilError):
    """A single token attempt failed; the poller retries these."""


class TokenRequestError(TokenError):
    """kubectl create --raw .../token failed."""


class TokenParseError(TokenError):
    """Token response did not have the expected shape."""

    def __init__(self, message: str, body: str):
        self.body = body
        super().__init__(message)


class EmptyTokenError(TokenParseError):
    """Token response parsed but status.token was empty."""


class TokenUnavailableError(KubeutilError):
    """No token was issued before the caller gave up."""

    def __init__(self, message: str, last_error: TokenError | None = None):
        self.last_error = last_error
        super().__init__(message)


class TokenDeadlineExceeded(TokenUnavailableError, TimeoutError):
    """Deadline passed before a token was issued."""


class TokenRequestCancelled(TokenUnavailableError):
    """Cancel event was set before a token was issued."""
