"""
FastAPI host for MSSqlClient.

The app lifespan plays the host-runtime role: it calls start() once on
startup (waiting for the database if needed) and stop() once on shutdown.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI

from mssql_access.api.routes.health import router as health_router
from mssql_access.client import MSSqlClient


def make_lifespan(
    client_factory: Callable[[], MSSqlClient] = MSSqlClient,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build a lifespan that owns one client for the life of the app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        client = client_factory()
        app.state.mssql = client
        await client.start()
        try:
            yield
        finally:
            await client.stop()
            app.state.mssql = None

    return lifespan


lifespan = make_lifespan()


def create_app(
    client_factory: Callable[[], MSSqlClient] = MSSqlClient,
    **kwargs,
) -> FastAPI:
    """App with the client lifespan and health routes mounted."""
    app = FastAPI(lifespan=make_lifespan(client_factory), **kwargs)
    app.include_router(health_router)
    return app
