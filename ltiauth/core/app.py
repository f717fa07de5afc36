"""FastAPI application factory for the LTI-AUTH tool endpoints."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from ltiauth.core.logging import configure_logging
from ltiauth.core.settings import LTISettings
from ltiauth.lti.errors import LTIAuthError
from ltiauth.lti.routes_keys import router as keys_router


async def _lti_error_handler(_request: Request, exc: LTIAuthError) -> JSONResponse:
    return JSONResponse(
        {"error": exc.code, "error_description": str(exc)},
        status_code=exc.status_code,
    )


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = LTISettings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level, json=settings.log_json)
        yield

    app = FastAPI(
        title="LTI-AUTH Tool",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(LTIAuthError, _lti_error_handler)
    app.include_router(keys_router)

    return app
