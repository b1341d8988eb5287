"""Process-level connection settings, read from ``CRX_*`` environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_INSTALLER_BEAN = "org.apache.sling.installer:name=Sling OSGi Installer,type=Installer"


class CrxSettings(BaseSettings):
    """Where the runtime listens and how the service behaves."""

    model_config = SettingsConfigDict(env_prefix="CRX_", extra="ignore")

    base_url: str = "http://localhost:4502"
    jolokia_url: str = "http://localhost:8778"
    installer_bean: str = DEFAULT_INSTALLER_BEAN
    # Time the installer needs to pick up an action before a re-read is meaningful
    settle_seconds: float = Field(ge=0, default=10)
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> CrxSettings:
    """Get cached settings instance."""
    return CrxSettings()
