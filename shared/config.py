"""
Shared configuration management for the Trade Operations Workspace Layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings.

    Every option can be overridden with a ``WORKSPACE_``-prefixed environment
    variable (``WORKSPACE_CACHE_TTL_MS=60000``) or a ``.env`` file. Durations
    are expressed in milliseconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKSPACE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Cache
    cache_ttl_ms: int = Field(default=300_000, ge=1)
    cache_max_entries: int = Field(default=1000, ge=1)
    existence_ttl_ms: int = Field(default=120_000, ge=1)
    index_ttl_ms: int = Field(default=600_000, ge=1)
    search_result_ttl_ms: int = Field(default=300_000, ge=1)

    # Batching and pacing
    table_batch_size: int = Field(default=100, ge=1)
    hierarchical_batch_size: int = Field(default=50, ge=1)
    append_chunk_rows: int = Field(default=200, ge=1)
    table_chunk_delay_ms: int = Field(default=100, ge=0)
    hierarchical_chunk_delay_ms: int = Field(default=200, ge=0)

    # Monitoring
    slow_operation_threshold_ms: int = Field(default=2000, ge=0)
    remote_call_threshold_ms: int = Field(default=1000, ge=0)
    sample_retention: int = Field(default=500, ge=1)
    error_retention: int = Field(default=100, ge=1)

    # Provisioning
    max_name_length: int = Field(default=50, ge=1)
    workspace_root_name: str = Field(default="Trade_Operations")
    folder_url_template: str = Field(default="https://drive.google.com/drive/folders/{id}")
    root_layout_file: Optional[str] = Field(default=None)
    order_layout_file: Optional[str] = Field(default=None)

    # Table ranges used by the layer itself
    orders_range: str = Field(default="Order_Management!A:Q")
    folder_log_range: str = Field(default="Folder_Log!A:F")
    performance_log_range: str = Field(default="Performance_Monitor!A:F")

    # Google Workspace
    google_spreadsheet_id: str = Field(default="")
    google_root_folder_id: str = Field(default="root")
    google_access_token: str = Field(default="")
    google_request_timeout: float = Field(default=10.0, gt=0)
    drive_domain: str = Field(default="")

    def batch_size_for(self, store_kind: str) -> int:
        """Return the max chunk size for a store kind."""
        if store_kind == "table":
            return self.table_batch_size
        return self.hierarchical_batch_size

    def chunk_delay_ms_for(self, store_kind: str) -> int:
        """Return the inter-chunk delay for a store kind."""
        if store_kind == "table":
            return self.table_chunk_delay_ms
        return self.hierarchical_chunk_delay_ms


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
