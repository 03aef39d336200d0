# Assumptions:
# - Configuration management using environment variables
# - Pydantic Settings for validation
# - Only IdentityClient.from_settings() reads these; the request core never does

from functools import lru_cache

from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Identity client settings"""

    # Remote service
    base_url: str = "http://localhost:9011"
    api_key: str | None = None
    tenant_id: str | None = None

    # TLS client authentication
    client_certificate: str | None = None
    client_key: str | None = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_prefix = "IDENTITY_CLIENT_"
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> ClientSettings:
    """Get client settings singleton"""
    return ClientSettings()
