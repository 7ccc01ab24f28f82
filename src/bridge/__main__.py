"""
Command-line entry point: ``geminicli-bridge`` or ``python -m bridge``.

Host and port come from ``API_HOST``/``API_PORT`` (default 127.0.0.1:18791).
"""

import uvicorn

from bridge.config import Settings


def main() -> None:
    """Run the bridge with uvicorn on the configured address."""
    settings = Settings()
    uvicorn.run(
        "bridge.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
