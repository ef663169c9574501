"""Read-only HTTP view over the iterations directory: summaries, ticket markdown, counts."""

from dotenv import load_dotenv

load_dotenv()

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from roundup.api.v1 import router as v1_router
from roundup.core.config import Settings, get_settings
from roundup.core.errors import RoundupError

logger = logging.getLogger(__name__)


async def roundup_error_handler(request: Request, exc: RoundupError) -> JSONResponse:
    """Fatal roundup errors (e.g. corrupt ticket history) surface as 500 with their category."""
    logger.error(
        "Request failed",
        extra={"path": request.url.path, "error_category": exc.category},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": exc.message, "category": exc.category},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(
        title="Vulnerability Roundup API",
        version="0.1.0",
        docs_url="/docs" if settings.APP_ENV == "dev" else None,
        redoc_url=None,
    )
    # Browsers only need cross-origin reads in development.
    if settings.APP_ENV == "dev":
        application.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET"],
            allow_headers=["*"],
        )
    application.add_exception_handler(RoundupError, roundup_error_handler)
    application.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @application.get("/")
    def root() -> dict[str, str]:
        return {"message": "Vulnerability Roundup API", "api": settings.API_V1_PREFIX}

    return application


app = create_app()
