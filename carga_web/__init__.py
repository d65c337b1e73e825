"""CargaInteligente back-office Flask application factory."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click
from flask import Flask, current_app, g
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from .config import AppConfig, load_config
from .database import create_db_engine, init_schema
from .repositories import CollectionRepository

limiter = Limiter(key_func=get_remote_address)


def create_app(config: AppConfig | None = None) -> Flask:
    """Build and configure the back-office Flask application instance.

    Args:
        config: Optional :class:`AppConfig` override. When ``None`` the helper
            loads configuration via :func:`load_config`, which honours the
            environment variables and a local ``.env`` file.

    Returns:
        Flask: Initialised application exposing the JSON API. The instance
        carries a SQLAlchemy engine stored on ``app.config['DB_ENGINE']`` for
        downstream repositories and the integration credentials under their
        upper-case names.

    External Dependencies:
        * Calls :func:`load_config` to resolve runtime settings.
        * Uses :func:`create_db_engine` and :func:`init_schema` to prepare the
          database schema on startup.
        * Initialises :data:`limiter` with ``RATELIMIT_*`` settings.
    """

    app = Flask(__name__, instance_relative_config=True)
    app_config = config or load_config()
    Path(app.instance_path).mkdir(parents=True, exist_ok=True)
    app.config.update(
        SECRET_KEY=app_config.secret_key,
        CARGA_PUBLIC_BASE_URL=app_config.public_base_url,
        CARGA_SIGNATURE_URL=app_config.signature_url,
        CARGA_LOGO_URL=app_config.company_logo_url,
        LLM_MODEL=app_config.llm_model,
        CARGOFLOWS_API_KEY=app_config.cargoflows_api_key,
        CARGOFLOWS_ORG_TOKEN=app_config.cargoflows_org_token,
        SHIPENGINE_API_KEY=app_config.shipengine_api_key,
        MAERSK_API_KEY=app_config.maersk_api_key,
        TWILIO_ACCOUNT_SID=app_config.twilio_account_sid,
        TWILIO_AUTH_TOKEN=app_config.twilio_auth_token,
        TWILIO_PHONE_NUMBER=app_config.twilio_phone_number,
        MAIL_SERVER=app_config.mail_server,
        MAIL_PORT=app_config.mail_port,
        MAIL_USE_TLS=app_config.mail_use_tls,
        MAIL_USE_SSL=app_config.mail_use_ssl,
        MAIL_USERNAME=app_config.mail_username,
        MAIL_PASSWORD=app_config.mail_password,
        MAIL_DEFAULT_SENDER=app_config.mail_default_sender,
        MAIL_ALLOWED_SENDER_DOMAIN=app_config.mail_allowed_sender_domain,
        MAIL_RATE_LIMIT_PER_USER_PER_HOUR=app_config.mail_rate_limit_per_user_per_hour,
        MAIL_RATE_LIMIT_PER_USER_PER_DAY=app_config.mail_rate_limit_per_user_per_day,
        MAIL_RATE_LIMIT_PER_RECIPIENT_PER_DAY=app_config.mail_rate_limit_per_recipient_per_day,
        RATELIMIT_DEFAULT=app_config.ratelimit_default,
        RATELIMIT_STORAGE_URI=app_config.ratelimit_storage_uri,
        FLOW_RATE_LIMIT=app_config.flow_rate_limit,
    )
    engine = create_db_engine(app_config.database_url)
    init_schema(engine)
    app.config["DB_ENGINE"] = engine
    limiter.init_app(app)

    from .blueprints.actions import actions_bp
    from .blueprints.collections import collections_bp
    from .blueprints.documents import documents_bp
    from .blueprints.finance import finance_bp
    from .blueprints.portal import portal_bp
    from .blueprints.tracking import tracking_bp

    app.register_blueprint(collections_bp)
    app.register_blueprint(actions_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(portal_bp)
    app.register_blueprint(tracking_bp)

    @app.teardown_appcontext
    def teardown(_: Any) -> None:
        g.pop("carga_repo", None)

    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Initialize the database tables."""

        init_schema(engine)
        click.echo("Database initialized.")

    @app.cli.command("seed-data")
    def seed_data_command() -> None:
        """Write the initial records for every collection."""

        counts = CollectionRepository(engine).seed_all()
        for name, count in sorted(counts.items()):
            click.echo(f"{name}: {count}")

    return app


def get_repository() -> CollectionRepository:
    """Return a cached repository bound to the active Flask request.

    Returns:
        CollectionRepository: Lazily constructed instance stored on
        :mod:`flask.g` so blueprints share a single engine binding within a
        request lifecycle.

    External Dependencies:
        * Reads ``current_app.config['DB_ENGINE']`` set during
          :func:`create_app`.
    """

    if not hasattr(g, "carga_repo"):
        engine = current_app.config["DB_ENGINE"]
        g.carga_repo = CollectionRepository(engine)
    return g.carga_repo


__all__ = ["create_app", "AppConfig", "get_repository", "limiter"]
