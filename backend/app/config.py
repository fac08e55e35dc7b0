# backend/app/config.py
from functools import lru_cache
from typing import List

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # environment: "dev" for running the app locally, "test" for pytest
    ENV: str = "dev"

    DATABASE_URL: str | None = None
    TEST_DATABASE_URL: str | None = None

    TRUSTED_HOSTS: List[str] = Field(
        default_factory=lambda: [
            "localhost",
            "127.0.0.1",
            "testserver",
            "test",
        ]
    )
    DB_APP_ROLE: str | None = None
    DB_REQUIRE_SSL: bool = True
    DB_POOL_SIZE: int = 5
    # Postgres statement_timeout per connection; 0 disables it.
    DB_STATEMENT_TIMEOUT_MS: int = 30_000

    LOG_LEVEL: str = "INFO"
    # "json" for deployed environments, "console" for a readable local terminal
    LOG_FORMAT: str = "json"

    # --- Upload acceptance ---
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024
    ALLOWED_EXTENSIONS: List[str] = Field(
        default_factory=lambda: [".xlsx", ".xls", ".csv"]
    )

    # --- Pipeline tuning ---
    # Records per insert statement against occupancy_forecasts.
    INSERT_BATCH_SIZE: int = 1000
    # Leading rows scanned for "As of Date" / "Comp Set" labels.
    METADATA_SCAN_ROWS: int = 20
    # Validator inspects this many leading records...
    VALIDATION_SAMPLE_SIZE: int = 50
    # ...and rejects the file when it finds more violations than this.
    VALIDATION_MAX_VIOLATIONS: int = 10
    WARNING_SAMPLE_SIZE: int = 5
    PREVIEW_ROWS: int = 100

    @model_validator(mode="after")
    def _check_limits(self):
        if self.INSERT_BATCH_SIZE < 1:
            raise ValueError("INSERT_BATCH_SIZE must be a positive integer.")
        if self.MAX_UPLOAD_BYTES < 1:
            raise ValueError("MAX_UPLOAD_BYTES must be a positive integer.")
        self.ALLOWED_EXTENSIONS = [
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.ALLOWED_EXTENSIONS
        ]
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
