from typing import Any
import os

from pydantic import PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    API_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "knowledge-memory-backend"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"  # Frontend URL

    # Auth (tokens are decoded for the subject only; unauthenticated calls use the mock user)
    AUTH0_ALGORITHMS: list[str] = ["RS256"]

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "knowledge"
    SQLALCHEMY_DATABASE_URI: PostgresDsn | None = None
    SYNC_SQLALCHEMY_DATABASE_URI: PostgresDsn | None = None

    @field_validator("SQLALCHEMY_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: str | None, info: dict[str, Any]) -> Any:
        if isinstance(v, str):
            return v
        return PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=info.data.get("POSTGRES_USER"),
            password=info.data.get("POSTGRES_PASSWORD"),
            host=info.data.get("POSTGRES_HOST"),
            port=info.data.get("POSTGRES_PORT"),
            path=f"{info.data.get('POSTGRES_DB') or ''}",
        )

    @field_validator("SYNC_SQLALCHEMY_DATABASE_URI", mode="before")
    def assemble_sync_db_connection(cls, v: str | None, info: dict[str, Any]) -> Any:
        if isinstance(v, str):
            return v
        return PostgresDsn.build(
            scheme="postgresql+psycopg2",  # Use the synchronous driver
            username=info.data.get("POSTGRES_USER"),
            password=info.data.get("POSTGRES_PASSWORD"),
            host=info.data.get("POSTGRES_HOST"),
            port=info.data.get("POSTGRES_PORT"),
            path=f"{info.data.get('POSTGRES_DB') or ''}",
        )

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: str = "6379"
    REDIS_PASSWORD: str = ""
    REDIS_URL: str | None = None

    @field_validator("REDIS_URL", mode="before")
    def assemble_redis_connection(cls, v: str | None, info: dict[str, Any]) -> Any:
        if isinstance(v, str):
            return v
        password = f":{info.data.get('REDIS_PASSWORD')}@" if info.data.get("REDIS_PASSWORD") else ""
        return f"redis://{password}{info.data.get('REDIS_HOST')}:{info.data.get('REDIS_PORT')}/0"

    # Celery
    CELERY_BROKER_URL: str | None = None
    CELERY_RESULT_BACKEND: str | None = None
    # Run background work as FastAPI background tasks instead of through the broker (development only)
    CELERY_TASK_ALWAYS_EAGER: bool = False

    # OpenAI-compatible provider (embeddings and summaries)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str | None = None
    SUMMARY_MODEL: str = "gpt-4o-mini"
    SUMMARY_TEMPERATURE: float = 0.3

    # Embeddings
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    # Fixed system-wide; must match the document_chunk.embedding column
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_BATCH_SIZE: int = 10

    # Chunking (characters)
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200

    # Retrieval
    SEARCH_RESULT_LIMIT: int = 5
    SEARCH_SIMILARITY_THRESHOLD: float = 0.2

    # Conversation memory
    SUMMARY_MIN_MESSAGES: int = 4
    RECENT_SUMMARY_LIMIT: int = 3
    RECENT_SUMMARY_MIN_IMPORTANCE: int = 4

    # File ingestion
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "data")
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024  # 10MB
    DOCUMENT_PROCESSING_TIMEOUT_MINUTES: int = 30
    STALE_DOCUMENT_SWEEP_INTERVAL_SECONDS: int = 300

    DEBUG: bool = False

    # Test Database - SQLite in-memory for tests
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="allow",  # Allow extra fields from environment variables
    )


settings = Settings()
