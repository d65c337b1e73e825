"""Outbound email helpers and safety checks for the back office."""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from typing import Optional

from flask import current_app
from sqlalchemy import func, insert, select
from sqlalchemy.exc import SQLAlchemyError

from ..database import email_dispatch_log, session_scope


@dataclass(frozen=True)
class _RateLimitWindow:
    """Represents a configurable rate-limit window."""

    label: str
    limit: int
    interval: timedelta


class MailRateLimitError(RuntimeError):
    """Raised when an outbound email request exceeds configured limits."""


class MailNotConfiguredError(RuntimeError):
    """Raised when no SMTP server is configured."""


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _normalise_email(value: str) -> str:
    return (value or "").strip().lower()


def _active_windows() -> list[_RateLimitWindow]:
    """Return the rate-limit windows configured on the current app."""

    config = current_app.config
    return [
        _RateLimitWindow(
            label="per user per hour",
            limit=int(config.get("MAIL_RATE_LIMIT_PER_USER_PER_HOUR", 0) or 0),
            interval=timedelta(hours=1),
        ),
        _RateLimitWindow(
            label="per user per day",
            limit=int(config.get("MAIL_RATE_LIMIT_PER_USER_PER_DAY", 0) or 0),
            interval=timedelta(days=1),
        ),
        _RateLimitWindow(
            label="per recipient per day",
            limit=int(config.get("MAIL_RATE_LIMIT_PER_RECIPIENT_PER_DAY", 0) or 0),
            interval=timedelta(days=1),
        ),
    ]


def _count_dispatches(*, sender: str, recipient: str, window: _RateLimitWindow) -> int:
    """Return the number of logged dispatches inside ``window``.

    Args:
        sender: Normalised address of the operator requesting the send.
        recipient: Normalised recipient email address.
        window: Rate-limit policy currently being evaluated.

    Returns:
        int: Historical send count that applies to the window filters.

    External Dependencies:
        * Queries the ``email_dispatch_log`` table through the engine stored
          on ``current_app.config['DB_ENGINE']``.
    """

    since = _now() - window.interval
    query = select(func.count(email_dispatch_log.c.id)).where(
        email_dispatch_log.c.created_at >= since
    )
    if window.label.startswith("per user"):
        query = query.where(email_dispatch_log.c.sender == sender)
    if window.label == "per recipient per day":
        query = query.where(email_dispatch_log.c.recipient == recipient)
    with session_scope(current_app.config["DB_ENGINE"]) as session:
        return int(session.execute(query).scalar() or 0)


def enforce_mail_rate_limit(sender: Optional[str], recipient: str) -> None:
    """Raise :class:`MailRateLimitError` when the request exceeds policy.

    Per-user windows are skipped when the operator is unknown.
    """

    normalised_sender = _normalise_email(sender or "")
    normalised_recipient = _normalise_email(recipient)

    for window in _active_windows():
        if window.limit <= 0:
            continue
        if window.label.startswith("per user") and not normalised_sender:
            continue

        try:
            count = _count_dispatches(
                sender=normalised_sender,
                recipient=normalised_recipient,
                window=window,
            )
        except SQLAlchemyError as exc:
            current_app.logger.warning(
                "Failed to enforce mail rate limit (%s): %s", window.label, exc
            )
            continue

        if count >= window.limit:
            raise MailRateLimitError(f"Rate limit exceeded: {window.label}.")


def log_email_dispatch(
    feature: str, sender: Optional[str], recipient: str, subject: str
) -> None:
    """Persist an audit row for a successfully dispatched email."""

    with session_scope(current_app.config["DB_ENGINE"]) as session:
        session.execute(
            insert(email_dispatch_log).values(
                feature=feature,
                sender=_normalise_email(sender or ""),
                recipient=_normalise_email(recipient),
                subject=subject[:255],
                created_at=_now(),
            )
        )


def validate_sender_domain(sender: str) -> None:
    """Ensure ``sender`` belongs to ``MAIL_ALLOWED_SENDER_DOMAIN``.

    Raises:
        ValueError: When the sender has no domain or a foreign one.
    """

    allowed = (current_app.config.get("MAIL_ALLOWED_SENDER_DOMAIN") or "").strip().lower()
    if not allowed:
        return
    if "@" not in sender:
        raise ValueError("MAIL_DEFAULT_SENDER must include a domain portion")
    domain = sender.split("@", 1)[1].strip().lower()
    if domain != allowed:
        raise ValueError(
            f"Sender domain '{domain}' is not permitted; expected '{allowed}'."
        )


def send_email(
    to: str,
    subject: str,
    body: str,
    *,
    feature: str = "general",
    requested_by: Optional[str] = None,
    html: bool = False,
) -> None:
    """Send an email over SMTP after enforcing the dispatch policies.

    Args:
        to: Recipient email address.
        subject: Message subject line.
        body: Message body; sent as the HTML alternative when ``html`` is set.
        feature: Short label identifying the caller, stored in the log.
        requested_by: Operator email used for the per-user windows.
        html: Whether ``body`` is HTML.

    Raises:
        MailNotConfiguredError: When ``MAIL_SERVER`` is not set.
        MailRateLimitError: When a configured window is exhausted.
        ValueError: If the default sender is outside the allowed domain.
        smtplib.SMTPException: If the underlying SMTP call fails.
    """

    config = current_app.config
    server = config.get("MAIL_SERVER")
    if not server:
        raise MailNotConfiguredError("MAIL_SERVER is not configured.")

    sender = config.get("MAIL_DEFAULT_SENDER", "no-reply@cargainteligente.com")
    validate_sender_domain(sender)
    enforce_mail_rate_limit(requested_by, to)

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    if html:
        msg.set_content("Este email requer um cliente com suporte a HTML.")
        msg.add_alternative(body, subtype="html")
    else:
        msg.set_content(body)

    use_ssl = bool(config.get("MAIL_USE_SSL"))
    use_tls = bool(config.get("MAIL_USE_TLS"))
    if use_ssl:
        smtp_cls = smtplib.SMTP_SSL
        default_port = 465
    else:
        smtp_cls = smtplib.SMTP
        default_port = 587 if use_tls else 25

    with smtp_cls(server, config.get("MAIL_PORT") or default_port) as smtp:
        if use_tls and not use_ssl:
            smtp.starttls()
        username = config.get("MAIL_USERNAME")
        password = config.get("MAIL_PASSWORD")
        if username and password:
            smtp.login(username, password)
        smtp.send_message(msg)
    current_app.logger.info("Email '%s' sent to %s (%s)", subject, to, feature)
    log_email_dispatch(feature, requested_by, to, subject)


__all__ = [
    "MailNotConfiguredError",
    "MailRateLimitError",
    "enforce_mail_rate_limit",
    "log_email_dispatch",
    "send_email",
    "validate_sender_domain",
]
