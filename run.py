"""Entry point for the Agricultural Initiatives API.

Launches the FastAPI application under Uvicorn.  It is intended to be
executed from the project root, for example under Docker, where you
only specify a single Python file to run.

Configuration such as the database path, auth backend and Supabase
credentials is read from environment variables (see
``agri_initiatives_api/app/core/config.py``).

Usage:
    python run.py
"""
import asyncio
import logging

from uvicorn import Config, Server

from agri_initiatives_api.app.core.config import settings
from agri_initiatives_api.app.main import app


async def run_api() -> None:
    """Start the API using Uvicorn.

    Host and port are read from the ``HOST`` and ``PORT`` environment
    variables.  Defaults are ``0.0.0.0`` and ``8000``.
    """
    # Logging is configured by create_app; uvicorn must not replace it.
    config = Config(
        app=app,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_config=None,
        log_level=settings.log_level.lower(),
    )
    server = Server(config)
    await server.serve()


async def main() -> None:
    try:
        await run_api()
    except Exception:
        logging.exception("Exception in service")
        raise


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
