"""
Token usage accounting.

The Gemini CLI reports usage in two shapes: flat ``input_tokens`` /
``output_tokens`` / ``total_tokens`` on the stream-json ``result`` event, and
per-model ``stats.models[<model>].tokens`` in the json output. Missing or zero
counters fall back to a character-based estimate.
"""

import math
from typing import Any

from bridge.models.openai import Usage
from bridge.utils.logging import get_logger

logger = get_logger(__name__)


def estimate_tokens(text: str, chars_per_token: float) -> int:
    """
    Estimate token count from a string.

    Args:
        text: Text to estimate
        chars_per_token: Characters per token (lower = more conservative)

    Returns:
        ceil(len(text) / chars_per_token), 0 for empty text

    Example:
        >>> estimate_tokens("hello world", 3.5)
        4
    """
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def estimate_usage(prompt: str, completion: str, chars_per_token: float) -> Usage:
    """Estimate prompt and completion independently and sum them."""
    prompt_tokens = estimate_tokens(prompt, chars_per_token)
    completion_tokens = estimate_tokens(completion, chars_per_token)
    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


def _count(value: Any) -> int:
    """Coerce a reported counter; anything unusable counts as missing (0)."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return max(int(value), 0)


def usage_from_result_stats(
    stats: dict[str, Any], prompt: str, completion: str, chars_per_token: float
) -> Usage:
    """
    Build usage from a stream-json ``result`` event.

    Args:
        stats: The event's ``stats`` object
        prompt: Prompt sent to the CLI
        completion: Content streamed to the caller
        chars_per_token: Estimation ratio for missing counters

    Returns:
        Usage with each missing counter estimated
    """
    estimate = estimate_usage(prompt, completion, chars_per_token)
    return Usage(
        prompt_tokens=_count(stats.get("input_tokens")) or estimate.prompt_tokens,
        completion_tokens=_count(stats.get("output_tokens")) or estimate.completion_tokens,
        total_tokens=_count(stats.get("total_tokens")) or estimate.total_tokens,
    )


def usage_from_model_stats(
    stats: dict[str, Any],
    model: str,
    prompt: str,
    completion: str,
    chars_per_token: float,
) -> Usage:
    """
    Build usage from the json output's per-model statistics.

    Stats are keyed by the model the bridge invoked. When the key is absent
    (for example because the CLI aliased the model) usage is estimated;
    that is never an error.

    Args:
        stats: The document's ``stats`` object
        model: Model name passed to the CLI
        prompt: Prompt sent to the CLI
        completion: Response text
        chars_per_token: Estimation ratio for missing counters

    Returns:
        Usage for this request
    """
    estimate = estimate_usage(prompt, completion, chars_per_token)

    models = stats.get("models") if isinstance(stats, dict) else None
    model_stats = models.get(model) if isinstance(models, dict) else None
    tokens = model_stats.get("tokens") if isinstance(model_stats, dict) else None

    if not isinstance(tokens, dict) or not tokens:
        logger.debug(
            "No per-model token stats, estimating usage",
            extra={"model": model, "reported_models": list(models) if isinstance(models, dict) else []},
        )
        return estimate

    return Usage(
        prompt_tokens=(
            _count(tokens.get("prompt")) or _count(tokens.get("input")) or estimate.prompt_tokens
        ),
        completion_tokens=_count(tokens.get("candidates")) or estimate.completion_tokens,
        total_tokens=_count(tokens.get("total")) or estimate.total_tokens,
    )
