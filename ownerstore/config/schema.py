"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class StorageConfig(BaseModel):
    """Where the owner binding and the secret cell live."""
    backend: Literal["memory", "file"] = "file"
    data_dir: str = "~/.ownerstore/data"

    @field_validator("backend", mode="before")
    @classmethod
    def normalize_backend(cls, value: str) -> str:
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized:
                return normalized
        return "file"


class AuditConfig(BaseModel):
    """Change feed configuration."""
    enabled: bool = True
    log_path: str = ""  # Empty: <data_dir>/events.jsonl


class APIConfig(BaseModel):
    """HTTP surface configuration."""
    host: str = "127.0.0.1"
    port: int = Field(default=18820, ge=1, le=65535)
    mask_not_set: bool = False  # Answer an unset read with the access-denied shape


class LoggingConfig(BaseModel):
    level: str = "INFO"

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        return str(value or "INFO").strip().upper() or "INFO"


class Config(BaseSettings):
    """Root configuration for ownerstore."""

    model_config = SettingsConfigDict(env_prefix="OWNERSTORE_", env_nested_delimiter="__")

    storage: StorageConfig = Field(default_factory=StorageConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment overrides values read from config.json.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def data_path(self) -> Path:
        """Get expanded data directory."""
        return Path(self.storage.data_dir).expanduser()
