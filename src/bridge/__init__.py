"""
geminicli-bridge: OpenAI-compatible chat completions served by the Gemini CLI.

Every request spawns a fresh ``gemini`` process, flattens the conversation
into a single prompt, and translates the CLI's output back into OpenAI
``chat.completion`` documents or SSE ``chat.completion.chunk`` streams.
"""

__version__ = "1.0.0"

from bridge.config import Settings

__all__ = ["Settings", "__version__"]
