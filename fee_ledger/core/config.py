from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite+aiosqlite:///./fee_ledger.db", alias="DATABASE_URL")
    sql_echo: bool = Field(False, alias="SQL_ECHO")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Students written per transaction during bulk assignment
    assignment_chunk_size: int = Field(200, alias="ASSIGNMENT_CHUNK_SIZE", ge=1)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
