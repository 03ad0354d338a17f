"""Run the API with uvicorn: ``python -m taskmanager``."""

from __future__ import annotations

import uvicorn

from taskmanager.core.config import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run("taskmanager.main:app", host=settings.tm_app_host, port=settings.tm_app_port)


if __name__ == "__main__":
    main()
