"""
Configuration management for the source console web service
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, validator


class Settings(BaseSettings):
    """Application settings loaded from the environment and .env files"""

    # Environment
    ENVIRONMENT: str = Field(default="production", description="Environment: development, staging, production")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8080, description="API port")
    API_PREFIX: str = Field(default="/api/v1", description="API prefix")

    # Security Configuration
    SECRET_KEY: str = Field(..., description="Secret key for JWT tokens (REQUIRED)")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30, description="JWT token expiration")
    ALGORITHM: str = Field(default="HS256", description="JWT algorithm")

    # CORS Configuration
    CORS_ORIGINS: List[str] = Field(default=["*"], description="Allowed CORS origins")
    CORS_EXPOSE_HEADERS: List[str] = Field(
        default=["x-markprompt-data", "x-markprompt-debug-info"],
        description="Response headers readable by browser clients"
    )

    # Plan limits
    TOKEN_ALLOWANCE: int = Field(default=1_000_000, description="Indexed token allowance per project")
    DEFAULT_PAGE_SIZE: int = Field(default=50, description="Files per page")

    # Nango connector
    NANGO_HOST: str = Field(default="https://api.nango.dev", description="Nango API base URL")
    NANGO_SECRET_KEY: Optional[str] = Field(default=None, description="Nango secret key")

    # Monitoring and Observability
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    STRUCTURED_LOGGING: bool = Field(default=True, description="Render logs as JSON")

    @validator("ENVIRONMENT")
    def validate_environment(cls, v):
        allowed = ["development", "staging", "production", "test"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v

    @validator("SECRET_KEY")
    def validate_secret_key(cls, v):
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    class Config:
        # Look for .env file in current directory first, then parent directories
        env_file = [".env", "../.env", "../../.env"]
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
