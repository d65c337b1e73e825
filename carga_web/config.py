"""Configuration helpers for the CargaInteligente web application.

Settings are read from environment variables. A local ``.env`` file is loaded
first through :mod:`dotenv` so developers can keep API credentials out of the
shell profile.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from secrets import token_urlsafe
from typing import Final, Optional

from dotenv import load_dotenv

TRUE_VALUES: Final[set[str]] = {"1", "true", "t", "yes", "y", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _resolve_secret_key() -> str:
    """Return the configured secret key or a one-time random value."""

    configured = os.getenv("CARGA_SECRET_KEY")
    if configured:
        return configured

    logging.getLogger("carga_web.config").warning(
        "CARGA_SECRET_KEY environment variable is not set; generated a one-time key."
    )
    return token_urlsafe(32)


@dataclass(slots=True)
class AppConfig:
    """Settings loaded from environment variables."""

    database_url: str
    secret_key: str
    public_base_url: str = "http://localhost:5000"
    llm_model: str = "gpt-4o-mini"
    signature_url: Optional[str] = None
    company_logo_url: Optional[str] = None
    cargoflows_api_key: Optional[str] = None
    cargoflows_org_token: Optional[str] = None
    shipengine_api_key: Optional[str] = None
    maersk_api_key: Optional[str] = None
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    mail_server: Optional[str] = None
    mail_port: int = 587
    mail_use_tls: bool = True
    mail_use_ssl: bool = False
    mail_username: Optional[str] = None
    mail_password: Optional[str] = None
    mail_default_sender: str = "no-reply@cargainteligente.com"
    mail_allowed_sender_domain: str = "cargainteligente.com"
    mail_rate_limit_per_user_per_hour: int = 10
    mail_rate_limit_per_user_per_day: int = 50
    mail_rate_limit_per_recipient_per_day: int = 20
    ratelimit_default: str = "200 per hour"
    ratelimit_storage_uri: str = "memory://"
    flow_rate_limit: str = "30 per minute"


def load_config() -> AppConfig:
    """Create an :class:`AppConfig` instance from environment variables."""

    load_dotenv()
    database = os.getenv(
        "CARGA_DATABASE", "sqlite:///" + str(Path("instance/carga.db"))
    )
    return AppConfig(
        database_url=database,
        secret_key=_resolve_secret_key(),
        public_base_url=os.getenv("CARGA_PUBLIC_BASE_URL", "http://localhost:5000"),
        llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
        signature_url=os.getenv("CARGA_SIGNATURE_URL"),
        company_logo_url=os.getenv("CARGA_LOGO_URL"),
        cargoflows_api_key=os.getenv("CARGOFLOWS_API_KEY"),
        cargoflows_org_token=os.getenv("CARGOFLOWS_ORG_TOKEN"),
        shipengine_api_key=os.getenv("SHIPENGINE_API_KEY"),
        maersk_api_key=os.getenv("MAERSK_API_KEY"),
        twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
        twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER"),
        mail_server=os.getenv("MAIL_SERVER"),
        mail_port=_env_int("MAIL_PORT", 587),
        mail_use_tls=_env_flag("MAIL_USE_TLS", True),
        mail_use_ssl=_env_flag("MAIL_USE_SSL", False),
        mail_username=os.getenv("MAIL_USERNAME"),
        mail_password=os.getenv("MAIL_PASSWORD"),
        mail_default_sender=os.getenv(
            "MAIL_DEFAULT_SENDER", "no-reply@cargainteligente.com"
        ),
        mail_allowed_sender_domain=os.getenv(
            "MAIL_ALLOWED_SENDER_DOMAIN", "cargainteligente.com"
        ),
        mail_rate_limit_per_user_per_hour=_env_int("MAIL_RATE_LIMIT_PER_USER_PER_HOUR", 10),
        mail_rate_limit_per_user_per_day=_env_int("MAIL_RATE_LIMIT_PER_USER_PER_DAY", 50),
        mail_rate_limit_per_recipient_per_day=_env_int(
            "MAIL_RATE_LIMIT_PER_RECIPIENT_PER_DAY", 20
        ),
        ratelimit_default=os.getenv("RATELIMIT_DEFAULT", "200 per hour"),
        ratelimit_storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        flow_rate_limit=os.getenv("FLOW_RATE_LIMIT", "30 per minute"),
    )
