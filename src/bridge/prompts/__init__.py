"""
Packaged system prompts.

Prompts are stored as ``<name>_system.md`` files in this directory and loaded
via ``bridge.utils.prompts.load_prompt()``.
"""
