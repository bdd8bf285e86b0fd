from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogFormat = Literal["json", "console"]

DEFAULT_BUILD_COMMAND: tuple[str, ...] = ("npm", "run-script", "build")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WEBAPP_PUBLISH_",
        env_file=".env",
        extra="ignore",
    )

    # Empty value disables events.jsonl / publish_report.json
    run_root: Path | None = Field(default=Path("_runs"))
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="console")

    manifest_name: str = Field(default="package.json")
    build_command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BUILD_COMMAND)
    )
    public_url_env: str = Field(default="PUBLIC_URL")

    upload_workers: int = Field(default=8, ge=1)
    s3_region: str | None = Field(default=None)
    s3_endpoint_url: str | None = Field(default=None)
    s3_acl: str = Field(default="public-read")

    @field_validator("run_root", mode="before")
    @classmethod
    def _empty_run_root_disables(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return Settings()
