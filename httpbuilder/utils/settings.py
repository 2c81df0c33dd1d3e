"""
httpbuilder/utils/settings.py

WHAT THIS FILE IS FOR
---------------------
This module defines the *single source of truth* for runtime configuration
of the shared HTTP client and the request builder defaults.

It is responsible for:
- Defining all supported configuration fields (via Pydantic BaseSettings)
- Loading default values from parameters/parameters.yaml
- Overriding defaults with environment variables (HTTPBUILDER_*)
- Validating values (e.g. timeouts must be positive)
- Exposing a cached, fully-validated Settings object to the composition root

LOAD & PRECEDENCE MODEL
-----------------------
Configuration is resolved by pydantic-settings sources (last wins):

1) YAML defaults from:
       parameters/parameters.yaml
2) Environment variables:
       HTTPBUILDER_*

WHAT THIS FILE IS NOT FOR
-------------------------
This module is NOT responsible for:
- Creating the HTTP client (see http_client.py)
- Per-request configuration (see builder/request_builder.py)

Builders never read settings themselves. The composition root reads
settings once and hands the resulting values to SharedHttpClient.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Tuple, Type

import structlog
import yaml
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

logger = structlog.get_logger(__name__)

PARAMETERS_PATH = Path(__file__).resolve().parents[2] / "parameters" / "parameters.yaml"

DEFAULT_TIMEOUT_MS = 20000


class ParametersYamlSource(YamlConfigSettingsSource):
    """
    parameters.yaml as a settings source.

    A missing file, a file that is not a mapping, or unparsable YAML all
    contribute nothing (logged); the remaining sources and field defaults
    still apply.
    """

    def __init__(self, settings_cls: Type[BaseSettings], yaml_file: Path):
        if not yaml_file.exists():
            logger.warning("parameters_yaml_missing", expected=str(yaml_file))
        super().__init__(settings_cls, yaml_file=yaml_file, yaml_file_encoding="utf-8")

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        try:
            with open(file_path, encoding=self.yaml_file_encoding) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("parameters_yaml_load_error", path=str(file_path), error=str(exc))
            return {}

        if not isinstance(data, dict):
            logger.warning("parameters_yaml_not_dict", path=str(file_path), type=type(data).__name__)
            return {}

        logger.info("parameters_yaml_loaded", path=str(file_path), fields=list(data))
        return data


class Settings(BaseSettings):
    """
    Runtime settings for httpbuilder.

    Load order / precedence (highest first):
        1) Keyword arguments to Settings(...)
        2) Environment variables (HTTPBUILDER_*)
        3) YAML defaults (PARAMETERS_PATH)
        4) Field defaults below
    """

    model_config = SettingsConfigDict(
        env_prefix="HTTPBUILDER_",
        extra="ignore",
    )

    # Service metadata
    service_name: str = "httpbuilder"
    environment: str = "local"
    log_level: str = "INFO"

    # Builder default deadline (milliseconds)
    default_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)

    # Shared client
    # - client_timeout_seconds: ceiling applied by httpx itself, independent
    #   of the per-request deadline
    client_timeout_seconds: float = Field(default=100.0, gt=0)
    max_connections: int = Field(default=100, gt=0)
    max_keepalive_connections: int = Field(default=20, ge=0)
    keepalive_expiry_seconds: float = Field(default=5.0, ge=0)
    follow_redirects: bool = True
    user_agent: str = "httpbuilder"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # PARAMETERS_PATH is read per instantiation so it can be repointed
        return (
            init_settings,
            env_settings,
            ParametersYamlSource(settings_cls, yaml_file=PARAMETERS_PATH),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Construct and return the final validated Settings object.

    Cached (one instance per process). Raises pydantic.ValidationError
    if the merged configuration (YAML + env) is invalid.
    """
    settings = Settings()

    logger.info(
        "settings_loaded",
        environment=settings.environment,
        service_name=settings.service_name,
        default_timeout_ms=settings.default_timeout_ms,
        client_timeout_seconds=settings.client_timeout_seconds,
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
        follow_redirects=settings.follow_redirects,
    )

    return settings
