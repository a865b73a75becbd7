"""FastAPI приложение (роутеры + логирование)."""

from fastapi import FastAPI

from chatbridge import __version__
from chatbridge.api.v1 import router as v1_router
from chatbridge.api.well_known import router as well_known_router
from chatbridge.infrastructure.logging import configure_logging


def create_app() -> FastAPI:
    """Собирает FastAPI приложение."""
    configure_logging()

    app = FastAPI(title="chatbridge", version=__version__)

    app.include_router(well_known_router)
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
