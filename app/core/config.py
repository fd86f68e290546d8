from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    create_tables: bool = Field(False, alias="CREATE_TABLES")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(7, alias="REFRESH_TOKEN_EXPIRE_DAYS")

    default_page_size: int = Field(20, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(100, alias="MAX_PAGE_SIZE")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    # "development" adds exception messages to SERVER_ERROR responses
    environment: str = Field("production", alias="ENVIRONMENT")
    cors_origins: str = Field("*", alias="CORS_ORIGINS")

    platform_admin_email: Optional[str] = Field(None, alias="PLATFORM_ADMIN_EMAIL")
    platform_admin_password: Optional[str] = Field(None, alias="PLATFORM_ADMIN_PASSWORD")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
