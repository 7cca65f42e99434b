from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    enable_openapi_docs: bool = Field(default=True, alias="ENABLE_OPENAPI_DOCS")

    internal_api_token: str = Field(
        default="dev_internal_token_change_me",
        alias="INTERNAL_API_TOKEN",
    )
    internal_api_allowlist: str = Field(
        default="127.0.0.1/32,::1/128",
        alias="INTERNAL_API_ALLOWLIST",
    )
    internal_api_trusted_proxies: str = Field(default="", alias="INTERNAL_API_TRUSTED_PROXIES")

    database_url: str = Field(alias="DATABASE_URL")
    redis_url: str = Field(alias="REDIS_URL")

    celery_broker_url: str = Field(alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field(alias="CELERY_RESULT_BACKEND")

    chain_listeners_enabled: bool = Field(default=True, alias="CHAIN_LISTENERS_ENABLED")
    chain_poll_interval_seconds: float = Field(default=5.0, alias="CHAIN_POLL_INTERVAL_SECONDS")
    chain_rpc_urls: str = Field(default="", alias="CHAIN_RPC_URLS")
    default_chain_rpc_url: str = Field(default="", alias="DEFAULT_CHAIN_RPC_URL")

    ipfs_gateway_url: str = Field(default="https://ipfs.io/ipfs/", alias="IPFS_GATEWAY_URL")
    metadata_fetch_timeout_seconds: float = Field(default=10.0, alias="METADATA_FETCH_TIMEOUT_SECONDS")

    daily_check_in_code: str = Field(default="daily_check_in", alias="DAILY_CHECK_IN_CODE")
    daily_check_in_value: int = Field(default=10, alias="DAILY_CHECK_IN_VALUE")

    nft_reindex_schedule_seconds: int = Field(default=3600, alias="NFT_REINDEX_SCHEDULE_SECONDS")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
