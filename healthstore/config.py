"""
Store configuration management
Toggles for persistence, authorization policy and logging
"""

from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class StoreConfig(BaseSettings):
    """Health record store configuration settings"""

    # Persistence
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL for durable state; in-memory when unset"
    )

    # Authorization policy
    strict_record_lookup: bool = Field(
        default=True,
        description="Raise RecordNotFound from grant/revoke instead of a silent no-op"
    )
    consent_requires_owner: bool = Field(
        default=True,
        description="Only the patient may add consent on their own record"
    )

    # Host settings
    default_identity: str = Field(
        default="",
        description="Caller identity used when a request carries none"
    )
    emit_events_to_log: bool = Field(default=True)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = {"env_prefix": "HEALTHSTORE_", "case_sensitive": False}


# Global configuration instance
store_config = StoreConfig()


def get_store_config() -> StoreConfig:
    """Get the global store configuration instance"""
    return store_config
