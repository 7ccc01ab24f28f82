"""
Gemini CLI execution engine.

Builds the subprocess invocation, supervises the process, parses its
stream-json output and emits OpenAI-shaped results.
"""

from bridge.runner.session import CompletionSession

__all__ = ["CompletionSession"]
