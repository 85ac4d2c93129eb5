"""Error codes and error handling utilities for ThemeEngine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for ThemeEngine operations."""

    # Persistence errors
    THEME_VERSION_CONFLICT = auto()
    STORE_UNAVAILABLE = auto()

    # Compilation errors
    COMPILE_FAILED = auto()

    # Network errors
    NETWORK_TIMEOUT = auto()
    NETWORK_UNAVAILABLE = auto()
    NETWORK_NOT_FOUND = auto()


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.THEME_VERSION_CONFLICT: (
        "The theme was changed by someone else. Reload it and apply your changes again."
    ),
    ErrorCode.STORE_UNAVAILABLE: "The settings store is not open.",
    ErrorCode.COMPILE_FAILED: "The theme could not be compiled to CSS.",
    ErrorCode.NETWORK_TIMEOUT: "Fetching the theme stylesheet timed out.",
    ErrorCode.NETWORK_UNAVAILABLE: "The theme stylesheet could not be fetched.",
    ErrorCode.NETWORK_NOT_FOUND: "The theme stylesheet was not found.",
}


@dataclass
class ThemeEngineError(Exception):
    """Base exception for ThemeEngine with error code and context."""

    code: ErrorCode
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = ERROR_MESSAGES.get(self.code, "An unexpected error occurred.")
        if not self.suggestion and self.code in ERROR_MESSAGES:
            self.suggestion = ERROR_MESSAGES[self.code]

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            details_str = " | ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"\nDetails: {details_str}")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging or RPC responses."""
        return {
            "code": self.code.name,
            "message": self.message,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ThemeVersionConflictError(ThemeEngineError):
    """Raised when a compare-and-swap write finds an unexpected stored version."""

    def __init__(self, expected_version: int) -> None:
        super().__init__(
            ErrorCode.THEME_VERSION_CONFLICT,
            message=f"Theme version conflict: expected stored version {expected_version}",
            details={"expected_version": expected_version},
        )
        self.expected_version = expected_version


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """One failed rule inside a theme document."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


class ThemeValidationError(ValueError):
    """Raised when a theme document or patch fails schema validation."""

    def __init__(self, issues: list[ValidationIssue] | str) -> None:
        if isinstance(issues, str):
            issues = [ValidationIssue(path="", message=issues)]
        self.issues = list(issues)
        super().__init__("; ".join(str(issue) for issue in self.issues))

    def field_errors(self) -> dict[str, str]:
        """Map each failing field path to its first message."""
        errors: dict[str, str] = {}
        for issue in self.issues:
            errors.setdefault(issue.path, issue.message)
        return errors


def classify_exception(exc: Exception) -> ThemeEngineError:
    """Classify a transport exception into a ThemeEngineError with appropriate code."""
    if isinstance(exc, ThemeEngineError):
        return exc
    exc_name = type(exc).__name__
    exc_str = str(exc).lower()

    if "timeout" in exc_str or "timed out" in exc_str or "TimeoutError" in exc_name:
        return ThemeEngineError(ErrorCode.NETWORK_TIMEOUT, details={"original": exc_str})
    if "404" in exc_str or "not found" in exc_str:
        return ThemeEngineError(ErrorCode.NETWORK_NOT_FOUND, details={"original": exc_str})
    if (
        "URLError" in exc_name
        or "HTTPError" in exc_name
        or isinstance(exc, OSError)
        or "connection" in exc_str
        or "unreachable" in exc_str
    ):
        return ThemeEngineError(ErrorCode.NETWORK_UNAVAILABLE, details={"original": exc_str})

    return ThemeEngineError(
        ErrorCode.COMPILE_FAILED,
        message=f"{exc_name}: {exc}",
        details={"original": exc_str},
    )


def format_error_for_user(error: ThemeEngineError | Exception) -> str:
    """Format an error for display to the user with actionable suggestions."""
    if isinstance(error, ThemeValidationError):
        lines = ["The theme could not be saved:"]
        lines.extend(f"- {issue}" for issue in error.issues)
        return "\n".join(lines)
    if isinstance(error, ThemeEngineError):
        parts = [error.message]
        if error.suggestion and error.suggestion != error.message:
            parts.append(f"\n\n{error.suggestion}")
        return "".join(parts)

    classified = classify_exception(error)
    return format_error_for_user(classified)
