from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("icn_hub.config")

_DEFAULT_UNITS = "Unit 2,Unit 3,Unit 4"


class Settings(BaseSettings):
    app_env: str = "development"
    database_url: str = "sqlite:///./icn_hub.db"
    document_key: str = Field(default="default", alias="DOCUMENT_KEY")
    json_store_path: str = Field(default="icn_hub_document.json", alias="JSON_STORE_PATH")
    valid_units: str = Field(default=_DEFAULT_UNITS, alias="VALID_UNITS")
    duplicate_mrn_severity: str = Field(default="warning", alias="DUPLICATE_MRN_SEVERITY")
    auto_close_on_census_drop: bool = Field(default=True, alias="AUTO_CLOSE_ON_CENSUS_DROP")
    auto_close_grace_days: int = Field(default=0, alias="AUTO_CLOSE_GRACE_DAYS")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    @field_validator("valid_units", mode="before")
    @classmethod
    def _join_units(cls, value):
        if value in {"", None}:
            return _DEFAULT_UNITS
        if isinstance(value, (list, tuple)):
            return ",".join(str(unit) for unit in value)
        return value

    @property
    def unit_whitelist(self) -> list[str]:
        return [unit.strip() for unit in self.valid_units.split(",") if unit.strip()]

    @field_validator("duplicate_mrn_severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value):
        if value in {"", None}:
            return "warning"
        return str(value).strip().lower()

    @field_validator("auto_close_grace_days", mode="before")
    @classmethod
    def _coerce_empty_ints(cls, value, info):
        if value in {"", None}:
            return cls.model_fields[info.field_name].default
        return value


def _is_production(app_env: str) -> bool:
    return app_env.strip().lower() in {"prod", "production"}


def validate_settings(settings: Settings) -> None:
    production = _is_production(settings.app_env)
    failures: list[str] = []
    warnings: list[str] = []

    if settings.duplicate_mrn_severity not in {"warning", "error"}:
        failures.append(
            f"DUPLICATE_MRN_SEVERITY must be 'warning' or 'error', got {settings.duplicate_mrn_severity!r}"
        )
    if not settings.unit_whitelist:
        failures.append("VALID_UNITS must list at least one unit")
    if settings.auto_close_grace_days < 0:
        failures.append("AUTO_CLOSE_GRACE_DAYS cannot be negative")

    if production and settings.database_url.startswith("sqlite"):
        warnings.append("DATABASE_URL points at SQLite in production")
    if not settings.auto_close_on_census_drop:
        warnings.append("AUTO_CLOSE_ON_CENSUS_DROP is off; dropped residents keep open tracker records")

    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    if failures:
        raise RuntimeError("Config validation failed: " + "; ".join(failures))


settings = Settings()
