"""Settings for the analytics API, read from the environment or a .env file."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./triforce.db"
    DATABASE_ECHO: bool = False

    # Bearer token verification
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    # CORS: the frontend plus any extra comma separated origins
    FRONTEND_URL: str = "http://localhost:5173"
    EXTRA_CORS_ORIGINS: str = ""

    LOG_LEVEL: str = "INFO"

    @property
    def cors_origins(self) -> list[str]:
        extra = [origin.strip() for origin in self.EXTRA_CORS_ORIGINS.split(",") if origin.strip()]
        return [self.FRONTEND_URL, *extra]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
