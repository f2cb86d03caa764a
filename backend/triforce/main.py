"""FastAPI application entry point for the Triforce Analytics API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from triforce.config import get_settings
from triforce.database import create_tables
from triforce.exceptions import InvalidInputError
from triforce.routers import analytics, fitness

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    create_tables()
    logger.info("Database tables ready")
    yield


app = FastAPI(
    title="Triforce Analytics API",
    description="Triathlon training analytics - zones, aerobic efficiency, swim CSS and fitness forecasts",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": {"message": message, "code": code}},
    )


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    logger.warning(f"Invalid input on {request.method} {request.url.path}: {exc}")
    return _error_response(str(exc), "VALIDATION_ERROR")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = ", ".join(error["msg"] for error in exc.errors())
    logger.warning(f"Request validation failed on {request.method} {request.url.path}: {message}")
    return _error_response(message, "VALIDATION_ERROR")


app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(fitness.router, prefix="/api/fitness", tags=["Fitness"])


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Triforce Analytics API",
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
