"""FastAPI application factory for SimTrader.

Run with: uvicorn simtrader.main:app --reload
"""

from __future__ import annotations

import traceback
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app as make_metrics_app

from simtrader.api.algorithms import router as algorithms_router
from simtrader.api.backtest import router as backtest_router
from simtrader.common.config import get_settings
from simtrader.common.database import reset_engine
from simtrader.common.exceptions import (
    InvalidRequestError,
    NotFoundError,
    SimTraderError,
    SimulationOverflowError,
    UnauthenticatedError,
)
from simtrader.common.logging import get_logger
from simtrader.common.metrics import set_app_info
from simtrader.common.middleware import (
    PrometheusMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
    request_id_var,
)

logger = get_logger("SYSTEM")

VERSION = "0.1.0"

# Status codes per error kind; anything else is a 400
_STATUS_BY_ERROR: dict[type[SimTraderError], int] = {
    UnauthenticatedError: 401,
    NotFoundError: 404,
    InvalidRequestError: 422,
    SimulationOverflowError: 422,
}


def _error_body(error: str, kind: str, message: str) -> dict:
    return {"error": error, "kind": kind, "message": message}


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle — release the database pool on shutdown."""
    yield
    await reset_engine()
    logger.info("App shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="SimTrader",
        version=VERSION,
        description="Synthetic backtesting of trading strategy profiles",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last added = outermost = runs first on request
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ─── Exception Handlers ───

    @app.exception_handler(SimTraderError)
    async def simtrader_exception_handler(request: Request, exc: SimTraderError) -> JSONResponse:
        """Render SimTrader errors as structured JSON with a per-kind status."""
        status_code = next(
            (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
            400,
        )
        log = logger.warning if status_code < 500 else logger.error
        log(
            f"{type(exc).__name__}: {exc}",
            extra={"data": {"path": str(request.url), "kind": exc.kind, "context": exc.context}},
        )
        return JSONResponse(
            status_code=status_code,
            content=_error_body(type(exc).__name__, exc.kind, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Body/field validation failures are InvalidRequest errors."""
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        logger.warning(
            "Request validation failed",
            extra={"data": {"path": str(request.url), "errors": problems}},
        )
        return JSONResponse(
            status_code=422,
            content=_error_body(
                InvalidRequestError.__name__,
                InvalidRequestError.kind,
                f"Invalid request: {problems}",
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions — log traceback, return 500."""
        rid = request_id_var.get("")
        logger.error(
            f"Unhandled {type(exc).__name__}: {exc}",
            extra={
                "data": {
                    "path": str(request.url),
                    "request_id": rid,
                    "traceback": traceback.format_exc(),
                }
            },
        )
        body = _error_body("InternalServerError", "internal", "An unexpected error occurred")
        if rid:
            body["request_id"] = rid
        return JSONResponse(status_code=500, content=body)

    # ─── Health ───

    @app.get("/health")
    async def health_check() -> dict:
        """Liveness check — confirms the process is running."""
        return {"status": "ok", "version": VERSION}

    # ─── Prometheus Metrics ───

    app.mount("/metrics", make_metrics_app())
    set_app_info(version=VERSION, environment=get_settings().environment)

    # ─── Router Mounting ───

    app.include_router(backtest_router, prefix="/api/backtest", tags=["backtest"])
    app.include_router(algorithms_router, prefix="/api/algorithms", tags=["algorithms"])

    logger.info("App started", extra={"data": {"version": VERSION}})

    return app


app = create_app()
