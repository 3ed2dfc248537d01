"""
Base settings class for environment configuration.

Uses Pydantic Settings for automatic environment variable loading.
Extend this class for application-specific settings.

Example:
    from common.config import BaseAppSettings

    class Settings(BaseAppSettings):
        ICON_BUCKET: str = "project-icons"

    settings = Settings()
    print(settings.PERSISTENCE_URL)
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseAppSettings(BaseSettings):
    """
    Base settings class with common configuration options.

    Automatically loads values from environment variables.
    Extend this class for application-specific settings.
    """

    # ==========================================================================
    # Persistence Service (remote procedures + object storage)
    # ==========================================================================
    PERSISTENCE_URL: str = "http://localhost:54321"
    PERSISTENCE_API_KEY: Optional[str] = None
    RPC_TIMEOUT_SECONDS: float = 10.0

    # ==========================================================================
    # Local Cache Database
    # ==========================================================================
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "morningcheck"

    # ==========================================================================
    # Identity Settings
    # ==========================================================================
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = "authenticated"

    # ==========================================================================
    # Runtime Settings
    # ==========================================================================
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # ==========================================================================
    # Pydantic Settings Configuration
    # ==========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",  # Allow app-specific settings
        case_sensitive=True,
    )

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT.lower() == "development"

    def validate_required(self) -> None:
        """
        Validate that required settings are configured.

        Raises:
            ValueError: If required settings are missing
        """
        errors = []

        if not self.PERSISTENCE_API_KEY:
            errors.append("PERSISTENCE_API_KEY is required to call the persistence service")

        if not self.JWT_SECRET:
            errors.append("JWT_SECRET is required to verify sign-in tokens")

        if errors:
            raise ValueError("Configuration errors:\n- " + "\n- ".join(errors))
