"""Provider configuration model and loaders."""

import os
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .constants import (
    ACCOUNT_ENV_VAR,
    ACCOUNT_KEY_ENV_VAR,
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_MAX_WIDTH,
    MEMORY_SERVICE_URL,
    SERVICE_URL_TEMPLATE,
)
from .errors import ConfigError


def _positive_int(value: Any, default: int) -> int:
    """Truncate form input to an int; anything unusable gives the default."""
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number > 0 else default


class ProviderConfig(BaseModel):
    """
    Settings the host passes at initialization.

    Keys may be given in the host's camelCase (``containerName``) or in
    snake_case. Numeric options arrive from a settings form, so they are
    coerced rather than rejected.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: str = "azure"         # "azure" | "memory"
    account: Optional[str] = None
    account_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("accountKey", "account_key")
    )
    container_name: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("containerName", "container_name")
    )
    private_container_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("privateContainerName", "private_container_name")
    )
    default_path: Optional[str] = Field(
        None, validation_alias=AliasChoices("defaultPath", "default_path")
    )
    cdn_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("cdnName", "cdn_name")
    )
    max_width: int = Field(
        DEFAULT_MAX_WIDTH, validation_alias=AliasChoices("maxWidth", "max_width")
    )
    # "maxConcurent" is the key older host settings were saved under
    max_concurrent: int = Field(
        DEFAULT_MAX_CONCURRENT,
        validation_alias=AliasChoices("maxConcurrent", "maxConcurent", "max_concurrent"),
    )
    endpoint: Optional[str] = None  # Service root override, e.g. Azurite

    @field_validator("max_width", mode="before")
    @classmethod
    def _coerce_max_width(cls, v: Any) -> int:
        return _positive_int(v, DEFAULT_MAX_WIDTH)

    @field_validator("max_concurrent", mode="before")
    @classmethod
    def _coerce_max_concurrent(cls, v: Any) -> int:
        return _positive_int(v, DEFAULT_MAX_CONCURRENT)

    @field_validator(
        "account", "account_key", "private_container_name", "default_path", "cdn_name", "endpoint",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _validate(self):
        if self.provider not in ("azure", "memory"):
            raise ConfigError(f"Provider '{self.provider}' not supported (use 'azure' or 'memory')")

        if not self.private_container_name:
            self.private_container_name = self.container_name

        # Credentials may come from the process environment instead
        if not self.account:
            self.account = os.environ.get(ACCOUNT_ENV_VAR) or None
        if not self.account_key:
            self.account_key = os.environ.get(ACCOUNT_KEY_ENV_VAR) or None

        if self.provider == "azure" and not self.account and not self.endpoint:
            raise ConfigError(
                f"Storage account required: set 'account' or {ACCOUNT_ENV_VAR}"
            )
        return self

    @property
    def service_url(self) -> str:
        """Root URL of the blob service, without trailing slash."""
        if self.endpoint:
            return self.endpoint.rstrip("/")
        if not self.account:
            return MEMORY_SERVICE_URL
        return SERVICE_URL_TEMPLATE.format(account=self.account)

    def container_for(self, is_private: bool) -> str:
        return self.private_container_name if is_private else self.container_name


def load_provider_config(path: Union[str, Path]) -> ProviderConfig:
    """Load provider configuration from a YAML file.

    The settings may sit at the top level or under a ``provider:`` or
    ``azure:`` key.

    Raises:
        ConfigError: If the file is missing or not a YAML mapping
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigError(f"Provider config not found: {cfg_path}")

    try:
        data = yaml.safe_load(cfg_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Provider config in {cfg_path} must be a mapping")

    for key in ("provider", "azure"):
        nested = data.get(key)
        if isinstance(nested, dict):
            data = nested
            break

    return build_config(data)


def build_config(config: Union[ProviderConfig, Mapping[str, Any]]) -> ProviderConfig:
    """Accept either a ready config or the raw mapping the host hands over."""
    if isinstance(config, ProviderConfig):
        return config
    try:
        return ProviderConfig.model_validate(dict(config))
    except ValidationError as e:
        raise ConfigError(f"Invalid provider configuration: {e}") from e
