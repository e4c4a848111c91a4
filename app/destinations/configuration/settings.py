"""Destinations configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from destinations.configuration.destination import (
    DestinationSettings,
    EmailSettings,
)


class Settings(BaseSettings):
    """Destinations configuration settings - main aggregator.

    Only the composing layer (DestinationService) reads these values. The
    registry and factories receive plain constructor arguments.

    Environment Variables:
        PREFIX: Environment prefix, empty in production
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    """

    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"

    destination: DestinationSettings
    email: EmailSettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            "destination": DestinationSettings,
            "email": EmailSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
