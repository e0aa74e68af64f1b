from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from sqlalchemy.exc import InterfaceError, OperationalError

from app.api.router import api_router
from app.core.config import settings
from app.core.errors import (
    ConfigurationError,
    KnowledgeBaseError,
    NotFoundOrForbidden,
    PersistenceError,
    ProviderError,
    UnsupportedFormat,
)
from app.services.embedding import validate_embedding_dimensions

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Knowledge Memory API",
    description="Document retrieval and conversation memory for a chat assistant",
    version="0.1.0",
)

# Set up CORS
origins = (
    [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    if "," in settings.CORS_ORIGINS
    else [settings.CORS_ORIGINS]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix=settings.API_PREFIX)

ERROR_STATUS_CODES = {
    UnsupportedFormat: 415,
    NotFoundOrForbidden: 404,
    ProviderError: 502,
    PersistenceError: 503,
    ConfigurationError: 500,
}


def _error_response(status_code: int, exc: KnowledgeBaseError) -> JSONResponse:
    content = {"detail": exc.message, "error": type(exc).__name__}
    if exc.provider_name:
        content["provider"] = exc.provider_name
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(KnowledgeBaseError)
async def knowledge_base_error_handler(request: Request, exc: KnowledgeBaseError):
    """Map the error hierarchy onto HTTP status codes."""
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            break
    else:
        status_code = 500
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return _error_response(status_code, exc)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def database_error_handler(request: Request, exc: Exception):
    logger.error(f"Database unavailable during {request.method} {request.url.path}: {exc}")
    return _error_response(503, PersistenceError("Database unavailable"))


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.on_event("startup")
async def validate_configuration():
    """Refuse to start if the embedding model cannot fill the chunk vector column."""
    validate_embedding_dimensions()
    logger.info("Startup checks completed")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
