from typing import List, Tuple

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = "sqlite:///viking.db"
    api_title: str = "Viking Store API"
    log_level: str = "INFO"
    access_token_expire_minutes: int = 15
    refresh_token_expire_minutes: int = 60 * 24 * 7
    jwt_secret: str = "secret"
    jwt_algorithm: str = "HS256"
    admin_permission: str = "ADMIN"
    # (name, permission) pairs created on startup when missing
    default_roles: List[Tuple[str, str]] = [
        ("admin", "ADMIN"),
        ("staff", "STAFF"),
        ("client", "CLIENT"),
    ]
    rate_limit_enabled: bool = True
    sensitive_rate_limit: str = "5/minute"


settings = Settings()
