"""Global monitor settings"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Centralized configuration.
    Reads configs from env variables.
    """

    app_name: str = "Room Monitor"

    matrix_homeserver_url: Optional[str] = None
    matrix_access_token: Optional[str] = Field(default=None, min_length=1)
    matrix_user_id: Optional[str] = None

    # Monitoring is disabled unless both are set
    observed_space: Optional[str] = None
    notification_room: Optional[str] = None

    check_interval_ms: int = Field(default=300000, gt=0)
    state_file: str = "./data/room-monitor-state.json"
    notification_delay_ms: int = Field(default=500, ge=0)
    startup_delay_s: float = Field(default=5.0, ge=0)
    max_traversal_depth: int = Field(default=32, gt=0)
    hierarchy_page_limit: int = Field(default=100, gt=0)
    request_timeout_s: float = Field(default=10.0, gt=0)

    model_config = {"env_file": ".env"}

    @field_validator("matrix_homeserver_url")
    @classmethod
    def check_homeserver_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value.startswith(("http://", "https://")):
            raise ValueError("Must be a valid URL")
        return value.rstrip("/")

    @property
    def monitoring_configured(self) -> bool:
        return bool(self.observed_space and self.notification_room)


settings = Settings()
