"""Destination dispatch settings."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

from destinations.configuration.base import DestinationsBaseSettings
from destinations.models import DestinationType


class DestinationSettings(DestinationsBaseSettings):
    """Dispatch and client cache configuration.

    Environment Variables:
        DESTINATION_ALLOW_LIST: JSON list of destination types that may be
            dispatched (default: every type)
        DESTINATION_HOST_DENY_LIST: JSON list of hostnames or CIDR ranges
            that webhook destinations may not target. CIDR entries only
            match URLs whose host is an IP address; hostnames are never
            resolved, so a name pointing into a denied range (for example
            a metadata endpoint alias) must be listed by name as well
        DESTINATION_TIMEOUT_SECONDS: Default publish timeout (default: 10s)
        DESTINATION_CLIENT_CACHE_MAX_SIZE: Cached clients per factory
            (default: 64)
        DESTINATION_CLIENT_CACHE_TTL_SECONDS: Age after which a cached client
            is rebuilt, 0 disables expiry (default: 3600s)

    Example:
        ```python
        from destinations.configuration import Settings

        settings = Settings()

        if DestinationType.SLACK in settings.destination.allow_list:
            ...
        ```
    """

    allow_list: List[DestinationType] = Field(
        default_factory=lambda: list(DestinationType),
        alias="DESTINATION_ALLOW_LIST",
        description="Destination types that may be dispatched",
    )
    host_deny_list: List[str] = Field(
        default_factory=list,
        alias="DESTINATION_HOST_DENY_LIST",
        description="Hostnames or CIDR ranges webhooks may not target",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        alias="DESTINATION_TIMEOUT_SECONDS",
        description="Default publish timeout (seconds)",
    )
    client_cache_max_size: int = Field(
        default=64,
        ge=1,
        alias="DESTINATION_CLIENT_CACHE_MAX_SIZE",
        description="Maximum cached transport clients per factory",
    )
    client_cache_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        alias="DESTINATION_CLIENT_CACHE_TTL_SECONDS",
        description="Seconds before a cached client is rebuilt (0 = never)",
    )

    @property
    def cache_ttl(self) -> Optional[int]:
        """TTL to hand to ClientCache (None when expiry is disabled)."""
        return self.client_cache_ttl_seconds or None


class EmailCredentials(BaseModel):
    """SMTP login referenced by EmailMessage.credentials_id."""

    username: str
    password: SecretStr


class EmailSettings(DestinationsBaseSettings):
    """SMTP credentials store.

    Environment Variables:
        DESTINATION_EMAIL_CREDENTIALS: JSON object mapping a credentials id
            to {"username": ..., "password": ...}
    """

    credentials: Dict[str, EmailCredentials] = Field(
        default_factory=dict,
        alias="DESTINATION_EMAIL_CREDENTIALS",
        description="Named SMTP credentials",
    )

    @field_validator("credentials")
    @classmethod
    def validate_credential_ids(
        cls, v: Dict[str, EmailCredentials]
    ) -> Dict[str, EmailCredentials]:
        """Reject blank credential ids."""
        for credentials_id in v:
            if not credentials_id.strip():
                raise ValueError("Email credentials id cannot be blank")
        return v
