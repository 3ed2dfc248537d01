"""
MorningCheck application settings.

Extends the base settings with check-in engine configuration.
"""

from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """MorningCheck-specific settings."""

    # ==========================================================================
    # Calendar
    # ==========================================================================
    # Day boundary for "today" in stats, streaks and check-ins
    APP_TIMEZONE: str = "Asia/Seoul"

    # ==========================================================================
    # Storage
    # ==========================================================================
    ICON_BUCKET: str = "mmcheck-project-icons"
    SNAPSHOT_COLLECTION: str = "storesnapshots"
    STORE_SNAPSHOT_KEY: str = "morningcheck-storage"


# Global settings instance
settings = Settings()
