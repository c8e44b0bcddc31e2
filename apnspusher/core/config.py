from __future__ import annotations

from functools import lru_cache
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


APNS_SANDBOX_URL = "https://api.sandbox.push.apple.com"
APNS_PRODUCTION_URL = "https://api.push.apple.com"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "apnspusher"
    log_level: str = "INFO"

    # Environment bases joined with /3/device/{token} for every request.
    apns_sandbox_url: str = APNS_SANDBOX_URL
    apns_production_url: str = APNS_PRODUCTION_URL
    # Provider tokens are reissued only after this window; APNs rejects frequent refreshes.
    apns_token_ttl_seconds: int = 40 * 60
    # APNs only speaks HTTP/2; disable for plain HTTP/1.1 test doubles.
    apns_http2: bool = True
    # Defaults applied when nothing was persisted yet.
    apns_default_priority: int = 5
    apns_default_push_type: str = "alert"
    # Sqlite file backing the persisted session fields.
    settings_store_path: str = "~/.apnspusher/settings.db"
    # Directory scanned for private keys matching client certificates.
    identity_key_dir: str | None = None
    identity_key_password: str | None = None

    @field_validator("apns_default_priority")
    @classmethod
    def _check_priority(cls, value: int) -> int:
        if value not in (3, 5, 10):
            raise ValueError("apns_default_priority must be 3, 5 or 10")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
