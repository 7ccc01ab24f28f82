"""
Prompt loading utilities.

Loads the default system instruction from text files in the prompts/ directory.
"""

from pathlib import Path

from bridge.utils.logging import get_logger

logger = get_logger(__name__)

# Prompts directory within the package
PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. IMPORTANT: When you use tools, you MUST use the tool "
    "output to generate a complete, helpful response to the user. Do not stop after just "
    "stating your intent to use a tool."
)


def load_prompt(name: str, fallback: str | None = None) -> str:
    """
    Load a system prompt from ``prompts/<name>_system.md``.

    Args:
        name: Prompt name (e.g., 'default')
        fallback: Optional fallback prompt if file not found

    Returns:
        Prompt content with surrounding whitespace removed

    Raises:
        FileNotFoundError: If prompt file not found and no fallback provided
    """
    prompt_file = PROMPTS_DIR / f"{name}_system.md"

    try:
        prompt = prompt_file.read_text(encoding="utf-8")
        logger.debug(f"Loaded prompt {name} from {prompt_file}")
        return prompt.strip()
    except FileNotFoundError:
        if fallback:
            logger.warning(f"Prompt file {prompt_file} not found, using fallback for {name}")
            return fallback
        logger.error(f"Prompt file {prompt_file} not found and no fallback provided")
        raise FileNotFoundError(
            f"Prompt file not found: {prompt_file}. Expected prompt at {prompt_file.absolute()}"
        )
