"""
AI Visibility Engine
FastAPI application factory
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from visibility_engine.config import get_settings
from visibility_engine.services.errors import RateLimitError, VisibilityEngineError

logger = logging.getLogger(__name__)

API_DESCRIPTION = """
Scheduling and confidence scoring for AI answer-engine visibility checks

## Features
- Provider catalog, presets and intent-based recommendations
- Visibility check runs across providers, with persona queries
- Recurring schedules (hourly, daily, weekly)
- Confidence badges for sample sizes, coverage and recommendations
- Content gap analysis against competitors
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    from visibility_engine.utils import close_db, close_redis, init_db

    await init_db()
    try:
        yield
    finally:
        await close_db()
        await close_redis()


def _error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, **extra}},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Pydantic error list without non-serializable context objects"""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


def register_error_handlers(application: FastAPI) -> None:
    """Every failure leaves the API as {"error": {code, message, details?}}"""

    @application.exception_handler(VisibilityEngineError)
    async def engine_error_handler(request: Request, exc: VisibilityEngineError):
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        headers = None
        if isinstance(exc, RateLimitError):
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()}, headers=headers)

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(
            422, "VALIDATION_ERROR", "Invalid request",
            details={"errors": jsonable_errors(exc)},
        )

    @application.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        if get_settings().DEBUG:
            return _error_response(500, "INTERNAL_ERROR", str(exc), type=type(exc).__name__)
        return _error_response(500, "INTERNAL_ERROR", "Internal server error")


def create_app() -> FastAPI:
    settings = get_settings()

    application = FastAPI(
        title="AI Visibility Engine API",
        description=API_DESCRIPTION,
        version="1.0.0",
        lifespan=lifespan,
        redoc_url="/redoc" if settings.is_development else None,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(application)

    from visibility_engine.api.routes import api_router
    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health")
    async def health_check():
        return {"status": "healthy", "version": "1.0.0", "environment": settings.APP_ENV}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "visibility_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.WORKERS,
    )
