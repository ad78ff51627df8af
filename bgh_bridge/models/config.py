"""
Pydantic model for process configuration.
Populated from environment variables by bgh_bridge.config.load_settings.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Top-level bridge configuration."""
    bgh_email: Optional[str] = None  # Default account when a caller has none
    bgh_password: Optional[str] = None
    timeout_ms: float = Field(default=15_000, gt=0)
    sim_mode: bool = False

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=4000, gt=0, lt=65536)
    production: bool = False
    cors_allowed_origins: List[str] = Field(default_factory=list)

    session_ttl_seconds: float = Field(default=60 * 60 * 12, gt=0)
    heartbeat_interval_seconds: float = Field(default=25.0, gt=0)
    poll_delay_ms: float = Field(default=750, ge=0)
    max_attempts: int = Field(default=6, ge=1)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def poll_delay_seconds(self) -> float:
        return self.poll_delay_ms / 1000

    @property
    def has_default_credentials(self) -> bool:
        return bool(self.bgh_email and self.bgh_password)
