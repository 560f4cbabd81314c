from __future__ import annotations

from dataclasses import dataclass
from email.message import EmailMessage
import logging
import smtplib
import ssl
import time

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    pass


@dataclass(frozen=True)
class _SmtpEndpoint:
    host: str
    port: int
    username: str | None
    password: str
    from_email: str
    from_name: str | None
    use_tls: bool
    use_ssl: bool


def _classify_smtp_data_error(exc: smtplib.SMTPDataError) -> str:
    smtp_error = exc.smtp_error
    if isinstance(smtp_error, bytes):
        message = smtp_error.decode("utf-8", errors="ignore").lower()
    else:
        message = str(smtp_error).lower()

    if "sending limit" in message or "quota" in message or "rate limit" in message:
        return "SMTP sender rate limited"
    if "recipient address rejected" in message or "recipient rejected" in message:
        return "SMTP recipient rejected"
    if "sender address rejected" in message or "sender rejected" in message:
        return "SMTP sender rejected"
    return "SMTP data rejected"


def _build_from_header(from_email: str, from_name: str | None) -> str:
    if from_name:
        return f"{from_name} <{from_email}>"
    return from_email


def _resolve_smtp_password(host: str | None, raw_password: str | None) -> str:
    password = raw_password or ""
    if host and host.lower() == "smtp.gmail.com":
        # Gmail app-passwords are often copied with spaces; normalize transparently.
        return "".join(password.split())
    return password


def _build_message(
    *,
    endpoint: _SmtpEndpoint,
    to_email: str,
    subject: str,
    text_content: str,
    html_content: str | None,
) -> EmailMessage:
    message = EmailMessage()
    message["From"] = _build_from_header(endpoint.from_email, endpoint.from_name)
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text_content)
    if html_content:
        message.add_alternative(html_content, subtype="html")
    return message


def _build_endpoint(settings: Settings) -> _SmtpEndpoint:
    if not settings.smtp_host or not settings.smtp_from_email:
        raise EmailDeliveryError("SMTP is not configured")
    return _SmtpEndpoint(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=_resolve_smtp_password(settings.smtp_host, settings.smtp_password),
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
        use_tls=settings.smtp_use_tls,
        use_ssl=settings.smtp_use_ssl,
    )


def _transport_attempts(endpoint: _SmtpEndpoint) -> list[tuple[int, bool, bool]]:
    attempts: list[tuple[int, bool, bool]] = [(endpoint.port, endpoint.use_tls, endpoint.use_ssl)]
    if endpoint.host.lower() == "smtp.gmail.com":
        fallback = (587, True, False) if endpoint.use_ssl else (465, False, True)
        if fallback not in attempts:
            attempts.append(fallback)
    return attempts


def _is_connection_issue(exc: Exception) -> bool:
    return isinstance(
        exc,
        (
            smtplib.SMTPConnectError,
            smtplib.SMTPServerDisconnected,
            smtplib.SMTPHeloError,
            OSError,
            TimeoutError,
        ),
    )


def send_email(
    *,
    to_email: str,
    subject: str,
    text_content: str,
    html_content: str | None = None,
    settings: Settings | None = None,
) -> None:
    settings = settings or get_settings()
    endpoint = _build_endpoint(settings)
    timeout = max(1, settings.smtp_timeout_seconds)
    retry_attempts = max(1, settings.smtp_retry_attempts)
    retry_backoff_seconds = max(0.0, settings.smtp_retry_backoff_seconds)

    last_error: Exception | None = None
    last_error_message = "Unable to deliver email"

    for port, use_tls, use_ssl in _transport_attempts(endpoint):
        for attempt in range(1, retry_attempts + 1):
            try:
                message = _build_message(
                    endpoint=endpoint,
                    to_email=to_email,
                    subject=subject,
                    text_content=text_content,
                    html_content=html_content,
                )
                if use_ssl:
                    with smtplib.SMTP_SSL(endpoint.host, port, timeout=timeout) as smtp:
                        if endpoint.username:
                            smtp.login(endpoint.username, endpoint.password)
                        smtp.send_message(message)
                    return

                with smtplib.SMTP(endpoint.host, port, timeout=timeout) as smtp:
                    if use_tls:
                        smtp.starttls(context=ssl.create_default_context())
                    if endpoint.username:
                        smtp.login(endpoint.username, endpoint.password)
                    smtp.send_message(message)
                return
            except smtplib.SMTPAuthenticationError as exc:  # pragma: no cover - transport-specific behavior
                raise EmailDeliveryError("SMTP authentication failed") from exc
            except smtplib.SMTPDataError as exc:  # pragma: no cover - transport-specific behavior
                raise EmailDeliveryError(_classify_smtp_data_error(exc)) from exc
            except smtplib.SMTPRecipientsRefused as exc:  # pragma: no cover - transport-specific behavior
                raise EmailDeliveryError("SMTP recipient rejected") from exc
            except smtplib.SMTPSenderRefused as exc:  # pragma: no cover - transport-specific behavior
                raise EmailDeliveryError("SMTP sender rejected") from exc
            except Exception as exc:
                last_error = exc
                if not _is_connection_issue(exc):
                    raise EmailDeliveryError("Unable to deliver email") from exc
                last_error_message = "SMTP connection failed"
                if attempt < retry_attempts and retry_backoff_seconds > 0:
                    time.sleep(retry_backoff_seconds * attempt)

    raise EmailDeliveryError(last_error_message) from last_error


def send_email_quietly(**kwargs) -> bool:
    """Background variant of :func:`send_email` that logs instead of raising."""
    try:
        send_email(**kwargs)
    except EmailDeliveryError as exc:
        logger.warning("E-mail to %s not delivered: %s", kwargs.get("to_email"), exc)
        return False
    return True
