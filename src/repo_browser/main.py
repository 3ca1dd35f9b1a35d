"""``repo-browser`` console entry point."""

from __future__ import annotations

import logging

import uvicorn

from repo_browser.infrastructure.config import get_settings

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"


def main() -> None:
    settings = get_settings()
    level = settings.log_level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(max(logging.WARNING, logging.getLevelName(level)))

    uvicorn.run(
        "repo_browser.interface.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=level.lower(),
    )


if __name__ == "__main__":
    main()
