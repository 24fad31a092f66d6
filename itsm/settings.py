from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Persistence layer settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the package).
    - Every value can be overridden with an `ITSM_`-prefixed env var.
    """

    model_config = SettingsConfigDict(env_prefix="ITSM_", extra="ignore")

    db_url: str | None = None
    db_echo: bool = False
    db_pool_pre_ping: bool = True
    log_level: str = "INFO"
    permissions_config_path: str | None = None

    default_page_size: int = Field(default=50, gt=0)
    code_generation_retries: int = Field(default=1, ge=0)

    # When a scope of an unknown shape reaches the composer, deny (False) or
    # leave the query unfiltered (True).
    scope_fail_open: bool = False

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "itsm.db"
        return f"sqlite:///{db_path}"

    def resolved_permissions_config_path(self) -> Path:
        if self.permissions_config_path:
            return Path(self.permissions_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "permissions.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
