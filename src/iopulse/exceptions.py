"""
Custom exception hierarchy for the advisory system.

All exceptions inherit from IoPulseError, which carries optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class IoPulseError(Exception):
    """Base exception for all advisory errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(IoPulseError):
    """Raised when configuration is invalid or missing."""

    pass


class GatewayError(IoPulseError):
    """Raised when a call to the language-model endpoint fails.

    Covers transport errors, timeouts and non-2xx HTTP responses.
    Never retried by the gateway itself.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether a caller-side retry policy may try again."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class ExtractionError(IoPulseError):
    """Raised when model output holds no parseable structure of the expected shape.

    Context should include:
        - shape: "object" or "array"
        - snippet: First 200 characters of the raw text
    """

    def __init__(self, message: str, snippet: str, shape: str) -> None:
        super().__init__(message, {"shape": shape, "snippet": snippet})
        self.snippet = snippet
        self.shape = shape


class ToolLoopExhausted(IoPulseError):
    """Raised when a tool-calling conversation exceeds its round budget."""

    def __init__(self, rounds: int, context: dict[str, Any] | None = None) -> None:
        super().__init__(f"Tool loop exceeded {rounds} rounds without a final answer", context)
        self.rounds = rounds


class ValidationError(IoPulseError):
    """Raised when parsed data is missing keys or has out-of-range values.

    Context should include:
        - field: The field that failed validation
        - value: The invalid value
        - expected: Description of what was expected
    """

    pass


class ToolExecutionError(IoPulseError):
    """Raised when a single tool invocation fails.

    Inside the tool loop it is fed back to the model. The quantitative stage
    calls tools directly and fails on it.
    """

    def __init__(
        self,
        message: str,
        tool_name: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.tool_name = tool_name


class DataFetchError(IoPulseError):
    """Raised when fetching market data from an external provider fails.

    Context should include:
        - source: The data source (e.g., "coingecko")
        - url: The URL that was being fetched
        - status_code: HTTP status code if applicable
    """

    pass


class StrategyNotFoundError(IoPulseError):
    """Raised when a strategy does not exist or belongs to another owner."""

    pass


class StageError(IoPulseError):
    """Raised when a pipeline stage fails.

    Wraps the underlying error so the orchestrator can report which stage
    failed and why.
    """

    def __init__(self, stage: str, cause: Exception) -> None:
        super().__init__(f"{stage} failed: {cause}", {"stage": stage})
        self.stage = stage
        self.cause = cause


# User-facing error categories and their production-mode messages
ERROR_MESSAGES: dict[str, str] = {
    "connectivity_error": (
        "Connectivity issues with AI services. Please check your internet "
        "connection and try again."
    ),
    "auth_error": "AI service authorization failed. Please contact support.",
    "rate_limit_error": (
        "AI service temporarily unavailable due to high demand. "
        "Please try again in a few minutes."
    ),
    "not_found": "Strategy not found or unauthorized",
    "analysis_error": "AI analysis failed",
}


def classify_error(error: BaseException | str) -> str:
    """Map a failure to a user-facing error category.

    Args:
        error: The exception (or its message) to classify.

    Returns:
        One of the keys of ERROR_MESSAGES.
    """
    if isinstance(error, StageError):
        return classify_error(error.cause)
    if isinstance(error, StrategyNotFoundError):
        return "not_found"
    if isinstance(error, GatewayError) and error.status_code is not None:
        if error.status_code in (401, 403):
            return "auth_error"
        if error.status_code == 429:
            return "rate_limit_error"

    text = str(error).lower()
    if any(
        marker in text
        for marker in ("no content received", "network", "connection", "timeout", "timed out")
    ):
        return "connectivity_error"
    if "api key" in text or "authorization" in text or "authentication" in text:
        return "auth_error"
    if "rate limit" in text or "quota" in text:
        return "rate_limit_error"
    return "analysis_error"


def error_payload(error: BaseException | str, production: bool = True) -> dict[str, Any]:
    """Build the `{success, error, errorType}` payload shown to callers.

    In production mode only the generic category message is exposed, never
    provider bodies or internal details.
    """
    error_type = classify_error(error)
    message = ERROR_MESSAGES[error_type] if production else str(error)
    return {"success": False, "error": message, "errorType": error_type}
