from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Turns the executor wiring on/off (see autoconfig.create_executor)
    ENABLED: bool = True

    # Central routine that receives {"queryName": ..., "params": {...}}
    PROCEDURE_NAME: Optional[str] = "EXECUTE_DYNAMIC_SQL"

    # None means "whatever schema the connection is already in"
    DEFAULT_SCHEMA: Optional[str] = None
    DEFAULT_CATALOG: Optional[str] = None

    LOG_QUERIES: bool = False

    # Only used by the engine/session factories in database.py
    DATABASE_URL: Optional[str] = None
    ECHO_SQL: bool = False

    # Reads LOYSQL_* variables from the environment and the .env file
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="LOYSQL_", extra="ignore", frozen=True
    )


# Process-wide instance for the wiring helpers, executors get theirs passed in
settings = Settings()
