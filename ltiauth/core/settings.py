"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

HTTP_TIMEOUT_DEFAULT = 10.0
IAT_MAX_AGE_DEFAULT = 10
NONCE_RETENTION_DEFAULT = 3600
RSA_KEY_SIZE_DEFAULT = 4096
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432

AGS_SCOPES = (
    "https://purl.imsglobal.org/spec/lti-ags/scope/lineitem "
    "https://purl.imsglobal.org/spec/lti-ags/scope/score "
    "https://purl.imsglobal.org/spec/lti-ags/scope/result.readonly"
)


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="LTI_DB_")

    url: str = ""
    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "lti"
    password: str = "lti"
    database: str = "lti"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT

    @property
    def async_url(self) -> str:
        """Build async PostgreSQL connection URL unless one is given."""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class LTISettings(BaseSettings):
    """Token verification and issuance settings."""

    model_config = SettingsConfigDict(env_prefix="LTI_")

    encryption_key: str = ""
    http_timeout: float = HTTP_TIMEOUT_DEFAULT
    iat_max_age: int = IAT_MAX_AGE_DEFAULT
    nonce_retention_seconds: int = NONCE_RETENTION_DEFAULT
    access_token_scope: str = AGS_SCOPES
    key_size: int = RSA_KEY_SIZE_DEFAULT
    log_level: str = "info"
    log_json: bool = True
