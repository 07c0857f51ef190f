"""Process entry point: ``authbridge`` console script."""

from __future__ import annotations

import uvicorn

from authbridge.api.app import create_app
from authbridge.core.config import AppSettings
from authbridge.core.logging import setup_logging


def main() -> None:
    settings = AppSettings()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
