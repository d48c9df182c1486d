from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # "atomic": multi-record sequences run in one transaction.
    # "sequential": each step commits on its own; unique indexes are the backstop.
    transaction_mode: Literal["atomic", "sequential"] = Field("atomic", alias="TRANSACTION_MODE")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    default_page_size: int = Field(20, alias="DEFAULT_PAGE_SIZE")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
