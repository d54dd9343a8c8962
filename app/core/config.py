from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(1440, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Reject a new request up front when the department already has approved leave in the period.
    # Approval always re-checks regardless of this flag.
    leave_conflict_check_on_create: bool = Field(True, alias="LEAVE_CONFLICT_CHECK_ON_CREATE")
    allow_privileged_self_registration: bool = Field(False, alias="ALLOW_PRIVILEGED_SELF_REGISTRATION")

    initial_admin_email: Optional[str] = Field(None, alias="INITIAL_ADMIN_EMAIL")
    initial_admin_password: Optional[str] = Field(None, alias="INITIAL_ADMIN_PASSWORD")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
