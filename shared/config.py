"""
Shared configuration management for the protected static cache service.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_LOCK_MARKERS = ["post-password-form", 'name="post_password_form"']
DEFAULT_NONCE_SECRET = "change-me-in-production"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PPSC_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Environment
    env: str = "local"
    log_level: str = "info"

    # Cache store
    cache_dir: Path = Path("pp-static-cache")
    log_filename: str = "ppsc-debug.log"
    access_deny_filename: str = ".htaccess"
    system_name: str = "PPSC"
    lock_markers: List[str] = Field(default_factory=lambda: list(DEFAULT_LOCK_MARKERS))
    single_flight: bool = True
    audit_recent_size: int = 200

    # Request routing
    resource_path_pattern: str = r"^/resources/(?P<resource_id>[0-9]+)/?$"
    resource_path_template: str = "/resources/{resource_id}"
    public_base_url: str = "http://localhost:8090"

    # Admin
    resources_file: Optional[Path] = None
    preload_timeout_seconds: Optional[float] = None
    preload_cookie: Optional[str] = None
    nonce_secret: str = DEFAULT_NONCE_SECRET
    nonce_ttl_seconds: int = 86400

    @property
    def log_path(self) -> Path:
        """Location of the audit log inside the cache directory."""
        return self.cache_dir / self.log_filename


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""
    
    service_name: str = "protected-cache"
    port: int = 8090
    host: str = "0.0.0.0"


def get_config(**overrides) -> ServiceConfig:
    """Get configuration for the service, with optional explicit overrides."""
    return ServiceConfig(**overrides)
