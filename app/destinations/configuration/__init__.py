"""Destinations configuration - public API.

Pydantic BaseSettings classes grouped by concern. Settings are consumed by
the composing layer only (see destinations.service); the registry and the
factories never read the environment.

Example:
    ```python
    from destinations.configuration import Settings

    settings = Settings()
    timeout = settings.destination.timeout_seconds
    ```
"""

from destinations.configuration.destination import (
    DestinationSettings,
    EmailCredentials,
    EmailSettings,
)
from destinations.configuration.settings import Settings

__all__ = [
    "Settings",
    "DestinationSettings",
    "EmailSettings",
    "EmailCredentials",
]
