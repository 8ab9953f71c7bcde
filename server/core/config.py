"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway settings driven entirely by environment variables."""

    # Remote data service
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    db_schema: str = Field(default="public", min_length=1)

    # Query cache
    cache_ttl: float = Field(default=300.0, gt=0)  # seconds

    # Retry executor
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0.0, le=60.0)  # seconds

    # Dispatch
    request_timeout: Optional[float] = Field(default=None, gt=0)  # seconds
    default_page_size: int = Field(default=10, ge=1, le=10000)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v):
        """Strip trailing slashes so the client builds clean REST paths."""
        if v:
            v = v.strip().rstrip("/")
            if not v.startswith(("http://", "https://")):
                raise ValueError("supabase_url must be an http(s) URL")
        return v or None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        if v.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()

    @property
    def supabase_key(self) -> Optional[str]:
        """Effective API key (service role wins over anon)."""
        return self.supabase_service_role_key or self.supabase_anon_key

    @property
    def has_credentials(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
