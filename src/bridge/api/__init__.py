"""
API layer for the bridge.

Health checks at the root, OpenAI-compatible endpoints under ``/v1``.
"""
