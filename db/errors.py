from __future__ import annotations


class ConfigurationError(RuntimeError):
    pass


class StatementError(RuntimeError):
    def __init__(self, message: str, statement: str | None = None):
        super().__init__(message)
        self.statement = statement


class MigrationError(RuntimeError):
    """Raised after a failed run has been rolled back."""

    def __init__(self, phase: str, cause: BaseException):
        super().__init__(f"{phase} failed: {cause}")
        self.phase = phase
        self.cause = cause
