"""Exception hierarchy shared by the runner, providers, aggregator and publishers."""
from __future__ import annotations

from typing import List, Optional


class HardwareReportError(Exception):
    """Root of every error raised by this package."""


# Command layer


class CommandError(HardwareReportError):
    pass


class CommandExecutionError(CommandError):
    """The command could not be spawned, timed out or was cancelled."""


class InvalidArgumentsError(CommandError):
    pass


# System layer


class SystemInfoError(HardwareReportError):
    pass


class CommandFailedError(SystemInfoError):
    def __init__(self, command: str, exit_code: Optional[int], stderr: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Command '{command}' failed with exit code {exit_code}: {stderr.strip()}")


class CommandNotFoundError(SystemInfoError):
    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Command not found: {command}")


class PermissionDeniedError(SystemInfoError):
    pass


class SystemIOError(SystemInfoError):
    pass


class ParseError(SystemInfoError):
    pass


class SystemTimeoutError(SystemInfoError):
    pass


# Domain layer


class DomainError(HardwareReportError):
    pass


class HardwareCollectionFailed(DomainError):
    pass


class SystemInfoUnavailable(DomainError):
    pass


class InsufficientPrivileges(DomainError):
    pass


class InvalidConfiguration(DomainError):
    pass


class MissingDependencies(DomainError):
    def __init__(self, names: List[str]) -> None:
        self.names = list(names)
        super().__init__("Missing dependencies: " + ", ".join(self.names))


class ParsingFailed(DomainError):
    pass


class DomainTimeout(DomainError):
    pass


def to_domain_error(exc: Exception) -> DomainError:
    """Project a system or command error onto the domain vocabulary."""
    if isinstance(exc, DomainError):
        return exc
    if isinstance(exc, CommandFailedError):
        return HardwareCollectionFailed(str(exc))
    if isinstance(exc, CommandNotFoundError):
        return MissingDependencies([exc.command])
    if isinstance(exc, PermissionDeniedError):
        return InsufficientPrivileges(str(exc))
    if isinstance(exc, SystemIOError):
        return SystemInfoUnavailable(str(exc))
    if isinstance(exc, ParseError):
        return ParsingFailed(str(exc))
    if isinstance(exc, SystemTimeoutError):
        return DomainTimeout(str(exc))
    if isinstance(exc, CommandExecutionError) and "timed out" in str(exc):
        return DomainTimeout(str(exc))
    return HardwareCollectionFailed(str(exc))


# Report layer


class ReportError(HardwareReportError):
    domain: Optional[DomainError] = None


class ReportGenerationError(ReportError):
    def __init__(self, category: str, reason: str) -> None:
        self.category = category
        self.reason = reason
        super().__init__(f"{category} collection failed: {reason}")


class ReportValidationError(ReportError):
    pass


# Publishing layer


class PublishError(HardwareReportError):
    domain: Optional[DomainError] = None

    @classmethod
    def from_domain(cls, error: DomainError) -> "PublishError":
        wrapped = cls(str(error))
        wrapped.domain = error
        return wrapped


class PublishNetworkError(PublishError):
    pass


class PublishAuthenticationError(PublishError):
    pass


class PublishSerializationError(PublishError):
    pass


class ReportSerializationError(PublishSerializationError):
    """A report document could not be encoded or decoded."""


class ReportFileError(PublishError):
    """A report document could not be read from or written to disk."""
