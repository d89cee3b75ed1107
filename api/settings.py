"""Application settings and configuration."""

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Required configuration is missing; the service can't start."""


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "photorevive"
    log_level: str = "INFO"
    log_format: str = "console"
    allowed_origins: str = "*"
    host: str = "0.0.0.0"
    port: int = 3001

    # Database
    database_path: str = "./photorevive.db"

    # Restoration provider
    provider_api_key: str
    provider_base_url: str
    provider_model: str = "gemini-2.5-flash-image"
    provider_timeout_seconds: float = 120.0

    # Comma-separated names whose balance is force-set on login
    privileged_names: str = ""

    @field_validator("provider_api_key", "provider_base_url")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @property
    def privileged_name_list(self) -> list[str]:
        return [n.strip() for n in self.privileged_names.split(",") if n.strip()]

    @property
    def allowed_origin_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()] or ["*"]


def load_settings(**overrides) -> Settings:
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = ", ".join(".".join(str(p) for p in err["loc"]).upper() for err in e.errors())
        raise ConfigurationError(f"Invalid or missing configuration: {missing}") from e
