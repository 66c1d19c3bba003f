from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./intake.db"

    # Platform (remote system) connection; both required for pull/push
    platform_api_url: str = ""
    platform_api_key: str = ""

    # Remote call wrapper tuning
    platform_wake_timeout_seconds: float = 10.0
    platform_wake_delay_seconds: float = 2.0
    platform_request_timeout_seconds: float = 15.0
    platform_retry_base_delay_seconds: float = 3.0
    platform_max_attempts: int = 4

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
