# pizza42/settings.py
from __future__ import annotations
from typing import List, Optional
from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict
import json

_DEFAULT_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _parse_cors(v: Optional[str | List[str]]) -> List[str]:
    """
    Accept JSON array (e.g. '["http://localhost:3000"]') or
    comma-separated string ('http://localhost:3000,http://127.0.0.1:3000').
    """
    if v is None:
        return list(_DEFAULT_ORIGINS)
    if isinstance(v, list):
        return v
    s = v.strip()
    if not s:
        return list(_DEFAULT_ORIGINS)
    # try JSON first
    try:
        parsed = json.loads(s)
        if isinstance(parsed, list) and all(isinstance(x, str) for x in parsed):
            return parsed
    except ValueError:
        pass
    # fallback: comma separated
    return [p.strip() for p in s.split(",") if p.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",   # ignore unknown env keys instead of raising
    )

    # --- API ---
    api_host: str = Field(default="127.0.0.1", validation_alias=AliasChoices("API_HOST",))
    api_port: int = Field(default=3001,        validation_alias=AliasChoices("API_PORT", "PORT"))
    cors_origins_raw: Optional[str | List[str]] = Field(
        default=None, validation_alias=AliasChoices("CORS_ORIGINS",)
    )
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL",))

    # --- Auth0 ---
    auth0_domain: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("AUTH0_DOMAIN",)
    )
    auth0_audience: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("AUTH0_AUDIENCE",)
    )
    # SPA client id, only handed to the browser through /auth_config.json
    auth0_client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("AUTH0_CLIENT_ID",)
    )
    auth0_m2m_client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("AUTH0_M2M_CLIENT_ID",)
    )
    auth0_m2m_client_secret: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("AUTH0_M2M_CLIENT_SECRET",)
    )

    # --- Orders ---
    email_verified_claim: str = Field(
        default="https://pizza-fourty-two.com/email_verified",
        validation_alias=AliasChoices("EMAIL_VERIFIED_CLAIM",)
    )
    create_orders_scope: str = Field(
        default="create:orders", validation_alias=AliasChoices("CREATE_ORDERS_SCOPE",)
    )
    read_orders_scope: str = Field(
        default="read:orders", validation_alias=AliasChoices("READ_ORDERS_SCOPE",)
    )
    display_timezone: str = Field(
        default="UTC", validation_alias=AliasChoices("DISPLAY_TIMEZONE",)
    )

    # --- Profile store mirroring ---
    mirror_queue_size: int = Field(
        default=100, validation_alias=AliasChoices("MIRROR_QUEUE_SIZE",)
    )
    mirror_workers: int = Field(
        default=1, validation_alias=AliasChoices("MIRROR_WORKERS",)
    )
    http_timeout: float = Field(
        default=10.0, validation_alias=AliasChoices("HTTP_TIMEOUT",)
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors(self.cors_origins_raw)

    def require_auth0(self) -> None:
        """Refuse to start without the values every token check depends on."""
        if not self.auth0_domain or not self.auth0_audience:
            raise RuntimeError(
                "AUTH0_DOMAIN and AUTH0_AUDIENCE must be set "
                "(see .env.example)."
            )


# singleton
settings = Settings()
