"""Tests for outbound mail controls and exchange rate conversions."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select

from carga_common.partners import Partner, initial_partners
from carga_common.rates import initial_quotes
from carga_common.shipments import QuoteCharge
from carga_web.database import email_dispatch_log, session_scope
from carga_web.services.exchange_rates import agio_rate, cost_sheet_totals, get_rates
from carga_web.services.mail import (
    MailNotConfiguredError,
    MailRateLimitError,
    enforce_mail_rate_limit,
    log_email_dispatch,
    send_email,
    validate_sender_domain,
)


class DummySMTP:
    """Lightweight SMTP stub used to avoid external calls in tests."""

    sent_messages: list = []
    login_calls: list = []

    def __init__(self, *args, **kwargs) -> None:
        DummySMTP.sent_messages = []
        DummySMTP.login_calls = []

    def __enter__(self) -> "DummySMTP":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self) -> None:
        return None

    def login(self, *args) -> None:
        DummySMTP.login_calls.append(args)

    def send_message(self, message) -> None:
        DummySMTP.sent_messages.append(message)


@pytest.fixture()
def mail_app(app, monkeypatch):
    app.config.update(
        MAIL_SERVER="smtp.example.com",
        MAIL_USERNAME="robot",
        MAIL_PASSWORD="secret",
        MAIL_RATE_LIMIT_PER_RECIPIENT_PER_DAY=1,
    )
    monkeypatch.setattr("smtplib.SMTP", DummySMTP)
    monkeypatch.setattr("smtplib.SMTP_SSL", DummySMTP)
    return app


def test_send_email_requires_server(app):
    with app.app_context():
        with pytest.raises(MailNotConfiguredError):
            send_email("cliente@nexus.com", "Assunto", "Corpo")


def test_send_email_logs_and_limits_recipient(mail_app):
    """A second email to the same recipient in a day is refused."""

    with mail_app.app_context():
        send_email(
            "Cliente@Nexus.com", "Cotação", "<p>Olá</p>", feature="quote", html=True
        )

        assert DummySMTP.login_calls == [("robot", "secret")]
        message = DummySMTP.sent_messages[0]
        assert message["From"] == "no-reply@cargainteligente.com"
        with session_scope(mail_app.config["DB_ENGINE"]) as session:
            rows = session.execute(select(email_dispatch_log)).all()
        assert [(r.recipient, r.feature) for r in rows] == [("cliente@nexus.com", "quote")]

        with pytest.raises(MailRateLimitError, match="per recipient per day"):
            send_email("cliente@nexus.com", "Cotação", "De novo")


def test_per_user_windows_skip_anonymous_senders(app):
    app.config.update(
        MAIL_RATE_LIMIT_PER_USER_PER_HOUR=1,
        MAIL_RATE_LIMIT_PER_RECIPIENT_PER_DAY=0,
    )
    with app.app_context():
        log_email_dispatch("general", "ana@cargainteligente.com", "a@x.com", "s")

        enforce_mail_rate_limit(None, "b@x.com")
        with pytest.raises(MailRateLimitError, match="per user per hour"):
            enforce_mail_rate_limit("Ana@CargaInteligente.com", "c@x.com")


def test_validate_sender_domain(app):
    with app.app_context():
        validate_sender_domain("ops@cargainteligente.com")
        with pytest.raises(ValueError):
            validate_sender_domain("ops@gmail.com")
        with pytest.raises(ValueError):
            validate_sender_domain("ops")

        app.config["MAIL_ALLOWED_SENDER_DOMAIN"] = ""
        validate_sender_domain("ops@gmail.com")


def test_exchange_rates_and_agio():
    rates = get_rates()
    rates["USD"] = Decimal("0")

    assert get_rates()["USD"] == Decimal("5.43")
    assert agio_rate("BRL", 10) == Decimal("1")
    assert agio_rate("XYZ") == Decimal("1")
    assert agio_rate("USD", 2.5) == Decimal("5.43") * Decimal("1.025")


def test_cost_sheet_totals_use_partner_agio():
    """Sales convert with the customer's agio, costs with the supplier's."""

    quote = next(q for q in initial_quotes() if q["id"] == "COT-01832")
    charges = [QuoteCharge.from_dict(c) for c in quote["charges"]]
    partners = [Partner.from_dict(p) for p in initial_partners()]

    totals = cost_sheet_totals(charges, partners)

    assert float(totals["totalSaleBRL"]) == pytest.approx(18534.10)
    assert float(totals["totalCostBRL"]) == pytest.approx(16225.0)
    assert float(totals["totalProfitBRL"]) == pytest.approx(2309.10)
