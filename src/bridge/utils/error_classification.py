"""
Gemini CLI failure classification.

Maps spawn errors and stderr text to user-facing error categories with an
ordered rule table. The first matching rule wins, so rate limit and capacity
signals are checked before authentication: capacity stack traces from the
Gemini API sometimes mention "authentication" incidentally.
"""

from typing import NamedTuple

from bridge.models.internal import ErrorCategory, ErrorClassification
from bridge.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown Gemini CLI error"


class ClassificationRule(NamedTuple):
    """Pattern → category rule. Patterns are matched case-insensitively."""

    category: ErrorCategory
    status_code: int
    message: str
    patterns: tuple[str, ...]
    unless: tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        return any(p in text for p in self.patterns) and not any(u in text for u in self.unless)


RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        ErrorCategory.RATE_LIMIT,
        429,
        "Gemini API capacity or rate limit exceeded. "
        "Please try again later or use a different model.",
        ("429", "model_capacity_exhausted", "resource_exhausted", "capacity", "rate limit", "quota"),
    ),
    ClassificationRule(
        ErrorCategory.AUTH_ERROR,
        401,
        "Gemini CLI authentication error. Run 'gemini' interactively to set up auth.",
        ("autherror", "credential", "authentication"),
        unless=("429", "capacity"),
    ),
    ClassificationRule(
        ErrorCategory.CONTEXT_OVERFLOW,
        400,
        "Context window exceeded",
        (
            "context window",
            "context length",
            "context_length",
            "token limit",
            "too long",
        ),
    ),
    ClassificationRule(
        ErrorCategory.BINARY_NOT_FOUND,
        500,
        "Gemini CLI binary not found at: {binary}. Install: npm install -g @google/gemini-cli",
        ("enoent", "not found", "no such file"),
    ),
    ClassificationRule(
        ErrorCategory.TIMEOUT,
        504,
        "Request timed out",
        ("timeout", "timed out", "sigterm", "sigkill"),
    ),
)


def classify_failure(
    stderr: str = "",
    *,
    spawn_error: str | None = None,
    terminated: bool = False,
    binary: str = "gemini",
) -> ErrorClassification:
    """
    Classify a failed Gemini CLI run.

    Args:
        stderr: Accumulated stderr of the process
        spawn_error: Message of the exception raised while starting the process
        terminated: Whether the supervisor forced the process to exit
        binary: Configured binary, named in the binary-not-found message

    Returns:
        ErrorClassification for the first matching rule, ``server_error`` otherwise
    """
    raw = f"{spawn_error or ''} {stderr or ''}".strip()
    text = raw.lower()

    for rule in RULES:
        if rule.matches(text) or (terminated and rule.category is ErrorCategory.TIMEOUT):
            classification = ErrorClassification(
                status_code=rule.status_code,
                message=rule.message.format(binary=binary),
                category=rule.category,
            )
            break
    else:
        classification = ErrorClassification(
            status_code=500,
            message=raw or UNKNOWN_ERROR_MESSAGE,
            category=ErrorCategory.SERVER_ERROR,
        )

    logger.debug(
        "Classified Gemini CLI failure",
        extra={
            "category": classification.category.value,
            "status_code": classification.status_code,
            "terminated": terminated,
        },
    )
    return classification
