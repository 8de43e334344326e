from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "form-builder-api"

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    AUTH_JWT_SECRET: str = "change_me_auth"
    AUTH_JWT_TTL_HOURS: int = 24
    AUTH_MIN_PASSWORD_LENGTH: int = 6
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"
    GOOGLE_TIMEOUT_SECONDS: float = 5.0

    DATABASE_URL: str
    REDIS_URL: str

    S3_ENDPOINT: str
    S3_ACCESS_KEY: str
    S3_SECRET_KEY: str
    S3_BUCKET: str
    S3_REGION: str = "us-east-1"
    S3_USE_SSL: bool = False

    UPLOAD_MAX_FILE_MB: int = 5
    UPLOAD_BODY_OVERHEAD_BYTES: int = 64 * 1024
    UPLOAD_RATE_LIMIT: int = 10
    UPLOAD_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    UPLOAD_RETENTION_DAYS: int = 30
    UPLOAD_URL_TTL_SECONDS: int = 7 * 24 * 3600

    # Compose/infra vars that may exist in shared .env
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "forms"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
