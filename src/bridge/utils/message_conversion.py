"""
Message format conversion: OpenAI chat history → Gemini CLI prompt.

The Gemini CLI takes a single prompt, so the conversation is flattened into
role-labelled sections in original order:

    [System Instructions]
    ...
    [End System Instructions]

    [User]
    ...

    [Assistant]
    ...

    [Tool Result (call_1)]
    ...
"""

from bridge.models.openai import ChatMessage, MessageRole
from bridge.utils.errors import InvalidRequestError
from bridge.utils.logging import get_logger

logger = get_logger(__name__)

_SYSTEM_ROLES = {MessageRole.SYSTEM.value, MessageRole.DEVELOPER.value}


def extract_text(message: ChatMessage) -> str:
    """
    Extract the text of a message.

    List content contributes only its ``text`` parts, joined by newlines.

    Args:
        message: Message from the OpenAI request

    Returns:
        Extracted text, empty when the message carries none
    """
    content = message.content
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "\n".join(part.text or "" for part in content if part.type == "text")


def _system_section(text: str) -> str:
    return f"[System Instructions]\n{text}\n[End System Instructions]"


def format_section(message: ChatMessage, text: str) -> str:
    """Label one message's text by its role."""
    role = message.role
    if role in _SYSTEM_ROLES:
        return _system_section(text)
    if role == MessageRole.USER.value:
        return f"[User]\n{text}"
    if role == MessageRole.ASSISTANT.value:
        return f"[Assistant]\n{text}"
    if role == MessageRole.TOOL.value:
        return f"[Tool Result ({message.tool_call_id or 'unknown'})]\n{text}"
    return text


def messages_to_prompt(messages: list[ChatMessage], default_system_prompt: str) -> str:
    """
    Convert OpenAI-format messages to a single prompt string for the Gemini CLI.

    Messages with empty text are skipped. When no system (or developer)
    message is present, ``default_system_prompt`` is prepended as the first
    section.

    Args:
        messages: Conversation in request order
        default_system_prompt: Instruction injected when no system message exists

    Returns:
        The prompt text

    Raises:
        InvalidRequestError: If no message yields any text
    """
    sections: list[str] = []
    has_system = False
    has_text = False

    for message in messages:
        if message.role in _SYSTEM_ROLES:
            has_system = True

        text = extract_text(message)
        if not text:
            logger.debug(f"Message with role '{message.role}' has empty content, skipping")
            continue

        has_text = has_text or bool(text.strip())
        sections.append(format_section(message, text))

    if not has_text:
        raise InvalidRequestError("Empty prompt after processing messages")

    if not has_system:
        sections.insert(0, _system_section(default_system_prompt))

    prompt = "\n\n".join(sections)

    logger.debug(
        "Converted OpenAI messages to prompt",
        extra={
            "input_count": len(messages),
            "section_count": len(sections),
            "prompt_chars": len(prompt),
            "default_system_injected": not has_system,
        },
    )

    return prompt
