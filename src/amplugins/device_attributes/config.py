"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Reconciliation settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DEVICE_ATTRS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    service_name: str = "device-attributes"
    plugin_version: str = "1.0.0"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    audit_json: bool = False

    # Required schema
    required_object_class: str = "deviceAttributeContainer"
    required_attributes: list[str] = Field(default=["deviceAttributes"])
    object_class_attribute: str = "sun-idrepo-ldapv3-config-user-objectclass"
    user_attributes_attribute: str = "sun-idrepo-ldapv3-config-user-attributes"
    merge_strategy: Literal["union", "replace"] = "union"
    populate_empty: bool = False  # empty current value means "not configured, leave alone"

    # Location of the LDAP data stores
    identity_service: str = "sunIdentityRepositoryService"
    sub_config_name_pattern: str = "*"
    sub_config_type_pattern: str = "LDAPv3*"

    # Execution
    concurrency: int = Field(default=1, ge=1)
    read_retries: int = Field(default=0, ge=0)
    retry_backoff_seconds: float = Field(default=0.5, ge=0)


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return the module-level settings singleton."""
    return settings
