"""Error types raised by the tool execution pipeline.

Every error carries a machine-readable code plus a human-readable message so
callers can surface failures in a UI, a log, or a test capture without
inspecting exception classes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Sequence


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes used in pipeline failures."""

    # Configuration
    CONFIGURATION_INVALID = "configuration_invalid"

    # Input validation
    DOCUMENT_NOT_FOUND = "document_not_found"
    DOCUMENT_EMPTY = "document_empty"
    SAVE_DIRECTORY_MISSING = "save_directory_missing"
    UNKNOWN_TOOL = "unknown_tool"
    MISSING_OPTION = "missing_option"
    INVALID_OPTION = "invalid_option"
    MISSING_PROMPT = "missing_prompt"

    # Budget
    PROMPT_TOO_LARGE = "prompt_too_large"

    # Remote service
    TOKEN_COUNT_FAILED = "token_count_failed"
    STREAM_FAILED = "stream_failed"
    STREAM_INTERRUPTED = "stream_interrupted"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class InkwellError(Exception):
    """Base exception class for all pipeline errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    # Whether the failure may succeed if the same run is repeated unchanged.
    retryable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for logs and result payloads."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return self.message


# -----------------------------------------------------------------------------
# Configuration Errors
# -----------------------------------------------------------------------------

@dataclass
class ConfigurationError(InkwellError):
    """Raised when required settings are missing or hold unusable values."""

    error_code: str = field(default=ErrorCode.CONFIGURATION_INVALID)
    message: str = field(default="Invalid configuration")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the API settings configuration")

    missing: Sequence[str] = field(default=())
    invalid: Sequence[str] = field(default=())

    @classmethod
    def for_fields(cls, *, missing: Sequence[str] = (), invalid: Sequence[str] = ()) -> "ConfigurationError":
        parts: list[str] = []
        if missing:
            parts.append(f"Missing required settings: {', '.join(missing)}")
        if invalid:
            parts.append(f"Invalid settings (expected non-negative integers): {', '.join(invalid)}")
        message = ". ".join(parts) or "Invalid configuration"
        return cls(message=f"{message}.", missing=tuple(missing), invalid=tuple(invalid))

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.missing:
            result["missing"] = list(self.missing)
        if self.invalid:
            result["invalid"] = list(self.invalid)
        return result


# -----------------------------------------------------------------------------
# Input Validation Errors
# -----------------------------------------------------------------------------

@dataclass
class InputValidationError(InkwellError):
    """Base class for failures detected before any network use."""

    error_code: str = field(default=ErrorCode.INVALID_OPTION)
    message: str = field(default="Invalid tool input")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")


@dataclass
class MissingDocumentError(InputValidationError):
    """Raised when an input document does not exist."""

    error_code: str = field(default=ErrorCode.DOCUMENT_NOT_FOUND)
    message: str = field(default="File not found")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the file path or select the project that contains it")

    path: str | None = field(default=None)

    @classmethod
    def for_path(cls, path: Any) -> "MissingDocumentError":
        return cls(message=f"File not found: {path}", path=str(path))


@dataclass
class EmptyDocumentError(InputValidationError):
    """Raised when an input document exists but holds only whitespace."""

    error_code: str = field(default=ErrorCode.DOCUMENT_EMPTY)
    message: str = field(default="File is empty")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Add content to the file before running the tool")

    path: str | None = field(default=None)

    @classmethod
    def for_path(cls, path: Any) -> "EmptyDocumentError":
        return cls(message=f"File is empty: {path}", path=str(path))


@dataclass
class SaveDirectoryError(InputValidationError):
    """Raised when no output directory was given and no project is selected."""

    error_code: str = field(default=ErrorCode.SAVE_DIRECTORY_MISSING)
    message: str = field(
        default="No save directory specified and no current project selected"
    )
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Please select a project or specify a save directory")


@dataclass
class UnknownToolError(InputValidationError):
    """Raised when a tool id does not resolve to a registered tool."""

    error_code: str = field(default=ErrorCode.UNKNOWN_TOOL)
    message: str = field(default="Tool not found")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use `inkwell list` to see registered tools")

    tool_id: str | None = field(default=None)

    @classmethod
    def for_id(cls, tool_id: str) -> "UnknownToolError":
        return cls(message=f"Tool not found: {tool_id}", tool_id=tool_id)


@dataclass
class MissingOptionError(InputValidationError):
    """Raised when a tool option required by that tool was not supplied."""

    error_code: str = field(default=ErrorCode.MISSING_OPTION)
    message: str = field(default="Missing required option")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    option: str | None = field(default=None)

    @classmethod
    def for_option(cls, option: str, *, tool_id: str | None = None) -> "MissingOptionError":
        owner = f"{tool_id} " if tool_id else ""
        return cls(message=f"Tool {owner}requires the '{option}' option", option=option)


@dataclass
class MissingPromptError(InputValidationError):
    """Raised when no prompt template exists for a tool and prompt type."""

    error_code: str = field(default=ErrorCode.MISSING_PROMPT)
    message: str = field(default="No prompt template found")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the prompt directory for the tool's templates")

    tool_id: str | None = field(default=None)
    prompt_type: str | None = field(default=None)

    @classmethod
    def for_template(cls, tool_id: str, prompt_type: str) -> "MissingPromptError":
        return cls(
            message=f"No prompt template found for {tool_id}/{prompt_type}",
            tool_id=tool_id,
            prompt_type=prompt_type,
        )


# -----------------------------------------------------------------------------
# Budget Errors
# -----------------------------------------------------------------------------

@dataclass
class BudgetOverflowError(InkwellError):
    """Raised when a prompt leaves less than the configured thinking budget.

    The run aborts before any completion request is made.
    """

    error_code: str = field(default=ErrorCode.PROMPT_TOO_LARGE)
    message: str = field(default="Prompt is too large for the configured thinking budget")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(
        default="Shorten the input documents or lower the configured thinking budget"
    )

    budget: Any = field(default=None)

    @classmethod
    def for_budget(cls, budget: Any) -> "BudgetOverflowError":
        configured = getattr(budget, "configured_thinking_budget", "?")
        return cls(
            message=f"Prompt is too large for {configured} thinking budget - run aborted",
            details=budget.to_dict() if hasattr(budget, "to_dict") else {},
            budget=budget,
        )


# -----------------------------------------------------------------------------
# Remote Service Errors
# -----------------------------------------------------------------------------

@dataclass
class RemoteServiceError(InkwellError):
    """Base class for failures reported by the completion service."""

    error_code: str = field(default=ErrorCode.STREAM_FAILED)
    message: str = field(default="Completion service error")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the network connection and API settings, then retry")

    retryable: ClassVar[bool] = True


@dataclass
class RemoteCountError(RemoteServiceError):
    """Raised when token counting fails after the retry budget is spent."""

    error_code: str = field(default=ErrorCode.TOKEN_COUNT_FAILED)
    message: str = field(default="Token counting failed")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the network connection and retry")


@dataclass
class RemoteStreamError(RemoteServiceError):
    """Raised when a completion request or stream fails."""

    error_code: str = field(default=ErrorCode.STREAM_FAILED)
    message: str = field(default="Completion request failed")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the network connection and API settings, then retry")


@dataclass
class StreamInterruptedError(RemoteStreamError):
    """Raised when an exchange fails; carries whatever text had accumulated.

    ``partial`` is a ``StreamingResult`` with ``complete`` set to ``False``.
    """

    error_code: str = field(default=ErrorCode.STREAM_INTERRUPTED)
    message: str = field(default="Completion stream was interrupted")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Re-run the tool; broken streams are not resumed")

    partial: Any = field(default=None)


__all__ = [
    "ErrorCode",
    "InkwellError",
    "ConfigurationError",
    "InputValidationError",
    "MissingDocumentError",
    "EmptyDocumentError",
    "SaveDirectoryError",
    "UnknownToolError",
    "MissingOptionError",
    "MissingPromptError",
    "BudgetOverflowError",
    "RemoteServiceError",
    "RemoteCountError",
    "RemoteStreamError",
    "StreamInterruptedError",
]
