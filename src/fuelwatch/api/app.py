"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fuelwatch.api.deps import AppState, RefreshJobs, api_key_middleware
from fuelwatch.api.routes import router
from fuelwatch.api.schemas import ErrorResponse
from fuelwatch.core.config import FuelwatchConfig, load_config
from fuelwatch.core.exceptions import (
    AggregationError,
    ConfigError,
    FuelwatchError,
    StorageError,
)
from fuelwatch.service.facade import PriceService
from fuelwatch.service.factory import create_service

_STATUS_BY_ERROR: dict[type[FuelwatchError], int] = {
    ConfigError: 400,
    StorageError: 503,
    AggregationError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the price service for the life of the server."""
    config: FuelwatchConfig = app.state.config
    service = app.state.service_override or create_service(config)
    await service.start()

    app.state.app_state = AppState(
        config=config,
        service=service,
        jobs=RefreshJobs(max_jobs=config.api.max_jobs),
    )
    try:
        yield
    finally:
        await service.stop()


def create_app(
    config: FuelwatchConfig | None = None,
    service: PriceService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Called with no arguments (as ``uvicorn --factory`` does), the config
    comes from ``load_config()``, so ``FUELWATCH_*`` variables and
    ``FUELWATCH_CONFIG`` apply. ``service`` overrides the one built from
    the config; the lifespan starts and stops it either way.
    """
    import fuelwatch

    app = FastAPI(
        title="Fuelwatch API",
        description="UK forecourt fuel prices, aggregated across retailers",
        version=fuelwatch.__version__,
        lifespan=lifespan,
    )
    app.state.config = config if config is not None else load_config()
    app.state.service_override = service

    # A no-op while api.api_key is unset. Added first so CORS wraps its 401s.
    app.middleware("http")(api_key_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    @app.exception_handler(FuelwatchError)
    async def fuelwatch_exception_handler(request: Request, exc: FuelwatchError):
        status = next(
            (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
            500,
        )
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=type(exc).__name__, detail=str(exc)).model_dump(),
        )

    return app
