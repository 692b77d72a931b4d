from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    APP_NAME: str = "tenantgate"
    LOG_LEVEL: str = "INFO"

    # Token verification
    JWT_SECRET: str | None = None
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None
    JWT_AUDIENCE: str | None = None

    # Upper bound for a single authorization store lookup
    STORE_TIMEOUT_SECONDS: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


settings = Settings()
