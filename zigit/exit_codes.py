"""
Standard exit codes and error types for zigit commands.

Following Unix/POSIX conventions for command-line tools. Every failure a
lifecycle operation can report is a CommandError subclass carrying the
exit code the CLI terminates with.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NOT_INSTALLED = 64       # No installed package matches the given name
CONFIG_ERROR = 66        # Configuration file error
PERMISSION_ERROR = 67    # Insufficient permissions
NETWORK_ERROR = 68       # Clone/fetch could not reach the remote
DATA_ERROR = 70          # Record and filesystem disagree
PARTIAL_SUCCESS = 71     # Some operations succeeded, some failed
NAME_CONFLICT = 72       # Effective name already claimed
BUILD_FAILED = 73        # Build command exited non-zero
CHECKOUT_FAILED = 74     # Working tree could not be switched
REF_NOT_FOUND = 75       # Tag/branch/commit absent or unreachable
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': PERMISSION_ERROR,
    'ConnectionError': NETWORK_ERROR,
    'TimeoutError': NETWORK_ERROR,
    'ValueError': DATA_ERROR,
    'KeyError': DATA_ERROR,
    'JSONDecodeError': DATA_ERROR,
    'IntegrityError': DATA_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.

    Lifecycle operations annotate the error with the package it concerns
    and the stage that was reached when it was raised.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.package: Optional[str] = None
        self.stage: Optional[str] = None

    def annotate(self, package: Optional[str], stage: Optional[str]) -> 'CommandError':
        """Attach package/stage context unless an inner layer already did."""
        if self.package is None:
            self.package = package
        if self.stage is None:
            self.stage = stage
        return self

    def describe(self) -> str:
        """Human readable message including any operation context."""
        if self.package and self.stage:
            return f"{self.package}: {self.message} (stage: {self.stage})"
        if self.package:
            return f"{self.package}: {self.message}"
        return self.message

    def to_dict(self) -> dict:
        result = {
            'error': self.message,
            'type': type(self).__name__,
            'exit_code': self.exit_code,
        }
        if self.package:
            result['package'] = self.package
        if self.stage:
            result['stage'] = self.stage
        return result


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class InvalidRequestError(CommandError):
    """Raised for conflicting or malformed command options."""
    def __init__(self, message: str):
        super().__init__(message, USAGE_ERROR)


class InvalidLocatorError(CommandError):
    """Raised when a repository reference cannot be parsed."""
    def __init__(self, source: str, reason: str = "not a recognized repository locator"):
        super().__init__(f"Invalid repository '{source}': {reason}", USAGE_ERROR)
        self.source = source


class RefNotFound(CommandError):
    """Requested tag/branch/commit is absent or unreachable."""
    def __init__(self, message: str):
        super().__init__(message, REF_NOT_FOUND)


class CheckoutFailed(CommandError):
    """The cache entry's working tree could not be switched."""
    def __init__(self, message: str):
        super().__init__(message, CHECKOUT_FAILED)


class BuildFailed(CommandError):
    """The build command exited non-zero or produced no usable artifact."""
    def __init__(self, message: str, exit_code: int = -1, output: str = ""):
        super().__init__(message, BUILD_FAILED)
        self.build_exit_code = exit_code
        self.output = output

    def to_dict(self) -> dict:
        result = super().to_dict()
        result['build_exit_code'] = self.build_exit_code
        if self.output:
            result['output'] = self.output
        return result


class NameConflict(CommandError):
    """The effective name is already claimed by a different package."""
    def __init__(self, name: str, reason: Optional[str] = None):
        message = reason or f"'{name}' is already installed; use --alias to install under another name"
        super().__init__(message, NAME_CONFLICT)
        self.name = name


class NotInstalled(CommandError):
    """The operation targets an unknown name or alias."""
    def __init__(self, name: str):
        super().__init__(f"Package '{name}' is not installed", NOT_INSTALLED)
        self.name = name


class NetworkFailure(CommandError):
    """Clone or fetch could not reach the remote."""
    def __init__(self, message: str):
        super().__init__(message, NETWORK_ERROR)


class StateCorruption(CommandError):
    """A record references a locator whose cache entry is missing."""
    def __init__(self, message: str):
        super().__init__(message, DATA_ERROR)


class PartialSuccessError(CommandError):
    """Raised when some operations succeed and some fail."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed

    def to_dict(self) -> dict:
        result = super().to_dict()
        result['succeeded'] = self.succeeded
        result['failed'] = self.failed
        return result


class FilesystemError(CommandError):
    """A file under the bin, data or cache directory could not be written."""
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message, exit_code)

    @classmethod
    def from_os_error(cls, error: OSError) -> 'FilesystemError':
        location = f" ({error.filename})" if error.filename else ""
        reason = error.strerror or str(error)
        return cls(f"{reason}{location}", get_exit_code_for_exception(error))
