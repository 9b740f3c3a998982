"""
Main FastAPI application
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agm_backend.api import join, links, meetings
from agm_backend.config import get_settings
from agm_backend.database import init_models
from agm_backend.exceptions import (
    AccessDenied,
    DenialReason,
    DependencyError,
    InvalidTransition,
    NotAuthorized,
    NotFound,
    ValidationError,
)
from agm_backend.utils.logger import configure_logging

settings = get_settings()
configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info("Database tables created")
    yield
    logger.info("Shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="AGM video meeting sessions and secure access links",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error taxonomy -> HTTP ---

@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(
        status_code=409,
        content={"error": "Invalid transition", "detail": str(exc), "status": exc.current_status},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": "Validation error", "detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"error": "Not found", "detail": str(exc)})


@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied):
    status_code = 404 if exc.reason == DenialReason.NOT_FOUND else 403
    return JSONResponse(
        status_code=status_code,
        content={"error": "Access denied", "reason": exc.reason.value, "detail": str(exc)},
    )


@app.exception_handler(NotAuthorized)
async def not_authorized_handler(request: Request, exc: NotAuthorized):
    return JSONResponse(status_code=403, content={"error": "Forbidden", "detail": str(exc)})


@app.exception_handler(DependencyError)
async def dependency_error_handler(request: Request, exc: DependencyError):
    logger.error(f"{request.method} {request.url.path} failed: {exc} (operation={exc.operation})")
    return JSONResponse(
        status_code=503,
        content={"error": "Service unavailable", "detail": DependencyError.public_message},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code == 401:
        return JSONResponse(
            status_code=401,
            content={"error": "Authentication required", "detail": exc.detail},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


# --- Routers ---

app.include_router(meetings.router, prefix="/api/meetings", tags=["Meetings"])
app.include_router(links.router, prefix="/api", tags=["Access Links"])
app.include_router(join.router, prefix="/api", tags=["Join"])


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("agm_backend.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
