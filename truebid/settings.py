from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias="APP_ENV")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS / Frontend
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    # Sync engine timing
    save_debounce_seconds: float = Field(default=1.0, validation_alias="SAVE_DEBOUNCE_SECONDS")
    # Changes this soon after a load are held and saved once the window closes.
    load_quiet_period_seconds: float = Field(
        default=0.1, validation_alias="LOAD_QUIET_PERIOD_SECONDS"
    )

    # Local cache tier
    local_cache_dir: str = Field(default=".truebid-cache", validation_alias="LOCAL_CACHE_DIR")
    local_cache_memo_size: int = Field(default=64, validation_alias="LOCAL_CACHE_MEMO_SIZE")

    # Remote tier: "memory" (dev only), "dynamodb" or "http".
    remote_backend: str = Field(default="memory", validation_alias="REMOTE_BACKEND")
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    ddb_table_name: str | None = Field(default=None, validation_alias="DDB_TABLE_NAME")
    remote_base_url: str | None = Field(default=None, validation_alias="REMOTE_BASE_URL")
    remote_timeout_seconds: float = Field(default=10.0, validation_alias="REMOTE_TIMEOUT_SECONDS")

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    @property
    def normalized_remote_backend(self) -> str:
        return (self.remote_backend or "").strip().lower() or "memory"

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Development runs happily against the in-memory remote store, but
        production must point at a real one.
        """
        if not self.is_production:
            return

        missing: list[str] = []
        backend = self.normalized_remote_backend

        if backend == "memory":
            missing.append("REMOTE_BACKEND (dynamodb or http)")
        if backend == "dynamodb" and not self.ddb_table_name:
            missing.append("DDB_TABLE_NAME")
        if backend == "http" and not self.remote_base_url:
            missing.append("REMOTE_BASE_URL")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        A redacted representation safe for structured logs / diagnostics.
        """
        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "sync": {
                "save_debounce_seconds": self.save_debounce_seconds,
                "load_quiet_period_seconds": self.load_quiet_period_seconds,
            },
            "local_cache": {
                "dir": self.local_cache_dir,
                "memo_size": self.local_cache_memo_size,
            },
            "remote": {
                "backend": self.normalized_remote_backend,
                "aws_region": self.aws_region,
                "ddb_table_name": self.ddb_table_name,
                "base_url": self.remote_base_url,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s
