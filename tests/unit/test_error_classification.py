"""Unit tests for Gemini CLI failure classification."""

import pytest

from bridge.models.internal import ErrorCategory
from bridge.utils.error_classification import RULES, UNKNOWN_ERROR_MESSAGE, classify_failure


class TestClassificationRules:
    """Pattern matching against stderr and spawn errors."""

    @pytest.mark.parametrize(
        "stderr",
        [
            "Error 429: Too Many Requests",
            "MODEL_CAPACITY_EXHAUSTED",
            "RESOURCE_EXHAUSTED: quota",
            "Rate limit reached for model",
            "You exceeded your current quota",
        ],
    )
    def test_rate_limit(self, stderr: str) -> None:
        result = classify_failure(stderr)

        assert result.category is ErrorCategory.RATE_LIMIT
        assert result.status_code == 429

    @pytest.mark.parametrize(
        "stderr",
        ["AuthError: login required", "No valid credentials", "Authentication failed"],
    )
    def test_auth(self, stderr: str) -> None:
        result = classify_failure(stderr)

        assert result.category is ErrorCategory.AUTH_ERROR
        assert result.status_code == 401
        assert "gemini" in result.message

    def test_capacity_beats_authentication(self) -> None:
        """Capacity stack traces that mention authentication are rate limits."""
        result = classify_failure("capacity exhausted\n  at authentication.js:12")

        assert result.category is ErrorCategory.RATE_LIMIT
        assert result.status_code == 429

    def test_auth_with_429_is_rate_limit(self) -> None:
        result = classify_failure("AuthError after 429 response")

        assert result.category is ErrorCategory.RATE_LIMIT

    @pytest.mark.parametrize(
        "stderr",
        [
            "context window exceeded",
            "Context length exceeded",
            "Input exceeds token limit",
            "prompt too long",
        ],
    )
    def test_context_overflow(self, stderr: str) -> None:
        result = classify_failure(stderr)

        assert result.category is ErrorCategory.CONTEXT_OVERFLOW
        assert result.status_code == 400
        assert result.message == "Context window exceeded"

    def test_stack_trace_mentioning_context_is_not_overflow(self) -> None:
        """Node internals such as Context.run do not signal a context overflow."""
        result = classify_failure(
            "TypeError: Cannot read properties of undefined\n"
            "    at AsyncLocalStorage.run (node:async_hooks:346:14)\n"
            "    at Context.run (/usr/lib/gemini/cli.js:88:3)"
        )

        assert result.category is ErrorCategory.SERVER_ERROR
        assert result.status_code == 500

    def test_binary_not_found_names_binary(self) -> None:
        """A missing binary names the configured path and how to install it."""
        result = classify_failure(
            spawn_error="[Errno 2] No such file or directory: '/opt/gemini'", binary="/opt/gemini"
        )

        assert result.category is ErrorCategory.BINARY_NOT_FOUND
        assert result.status_code == 500
        assert "/opt/gemini" in result.message
        assert "npm install -g @google/gemini-cli" in result.message

    @pytest.mark.parametrize("stderr", ["ETIMEDOUT: request timeout", "Killed by SIGTERM"])
    def test_timeout_patterns(self, stderr: str) -> None:
        result = classify_failure(stderr)

        assert result.category is ErrorCategory.TIMEOUT
        assert result.status_code == 504

    def test_matching_is_case_insensitive(self) -> None:
        assert classify_failure("QUOTA").category is ErrorCategory.RATE_LIMIT
        assert classify_failure("enoent").category is ErrorCategory.BINARY_NOT_FOUND

    def test_rule_order(self) -> None:
        """Rate limit is checked before auth, auth before timeout."""
        categories = [rule.category for rule in RULES]

        assert categories.index(ErrorCategory.RATE_LIMIT) < categories.index(ErrorCategory.AUTH_ERROR)
        assert categories.index(ErrorCategory.AUTH_ERROR) < categories.index(ErrorCategory.TIMEOUT)


class TestTerminatedRuns:
    """Runs ended by the supervisor."""

    def test_terminated_without_stderr_is_timeout(self) -> None:
        result = classify_failure("", terminated=True)

        assert result.category is ErrorCategory.TIMEOUT
        assert result.status_code == 504
        assert result.message == "Request timed out"

    def test_earlier_rule_wins_over_termination(self) -> None:
        """A rate-limited CLI that was later killed still reports the rate limit."""
        result = classify_failure("429 Too Many Requests", terminated=True)

        assert result.category is ErrorCategory.RATE_LIMIT


class TestFallback:
    """Unmatched failures."""

    def test_raw_stderr_is_reported(self) -> None:
        result = classify_failure("Segmentation fault in node")

        assert result.category is ErrorCategory.SERVER_ERROR
        assert result.status_code == 500
        assert result.message == "Segmentation fault in node"

    def test_empty_stderr_gets_generic_message(self) -> None:
        result = classify_failure("")

        assert result.category is ErrorCategory.SERVER_ERROR
        assert result.message == UNKNOWN_ERROR_MESSAGE
