from typing import Optional


class AutoFixError(Exception):
    """Base class for every error raised by the fix pipeline."""


class UnsafePathError(AutoFixError, ValueError):
    """A change set entry points outside the repository root."""


class InvalidRepositoryUrlError(AutoFixError, ValueError):
    """The repository URL does not name an owner and a repository."""


class ReasoningServiceError(AutoFixError):
    """The reasoning service failed or answered with something unusable."""


class GitCommandError(AutoFixError):
    def __init__(self, args: list[str], returncode: Optional[int], stderr: str = ""):
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        if returncode is None:
            message = f"git {' '.join(args)} timed out"
        else:
            message = f"git {' '.join(args)} exited with {returncode}: {detail}"
        super().__init__(message)


class WorkingCopyError(AutoFixError):
    """Branch creation, file writes, staging or committing failed."""


class HostingAPIError(AutoFixError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class PublishError(AutoFixError):
    """Opening the change request failed."""
