import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional
from core.config import settings
from core.exceptions import NotificationDeliveryFailed
import logging

logger = logging.getLogger(__name__)


@dataclass
class SMTPOptions:
    host: str
    port: int
    from_email: str
    username: Optional[str] = None
    password: Optional[str] = None
    from_name: Optional[str] = None
    use_ssl: bool = False
    use_tls: bool = True
    timeout: int = 15
    debug: bool = False

    @classmethod
    def from_settings(cls) -> Optional["SMTPOptions"]:
        if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
            return None
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            from_email=settings.SMTP_FROM_EMAIL,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_name=settings.SMTP_FROM_NAME,
            use_ssl=settings.SMTP_USE_SSL,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT or 15,
            debug=settings.SMTP_DEBUG,
        )

    @classmethod
    def from_configuration(cls, config) -> "SMTPOptions":
        return cls(
            host=config.host,
            port=int(config.port),
            from_email=config.from_email,
            username=config.username,
            password=config.password,
            from_name=config.from_name,
            use_ssl=bool(config.secure),
            use_tls=not bool(config.secure),
            timeout=settings.SMTP_TIMEOUT or 15,
            debug=settings.SMTP_DEBUG,
        )


def _build_message(subject: str, to_email: str, html_body: str, text_body: Optional[str], options: SMTPOptions) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{options.from_name} <{options.from_email}>" if options.from_name else options.from_email
    msg["To"] = to_email
    if text_body:
        msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def _open_connection(options: SMTPOptions) -> smtplib.SMTP:
    # SSL (SMTPS) or STARTTLS
    if options.use_ssl:
        server = smtplib.SMTP_SSL(options.host, options.port, timeout=options.timeout)
    else:
        server = smtplib.SMTP(options.host, options.port, timeout=options.timeout)
    server.set_debuglevel(1 if options.debug else 0)
    if not options.use_ssl and options.use_tls:
        server.starttls()
    if options.username and options.password:
        server.login(options.username, options.password)
    return server


def send_email(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None, options: Optional[SMTPOptions] = None) -> None:
    """Deliver one message over SMTP. Blocking; raises NotificationDeliveryFailed."""
    options = options or SMTPOptions.from_settings()
    if options is None:
        raise NotificationDeliveryFailed("SMTP is not configured")
    try:
        msg = _build_message(subject, to_email, html_body, text_body, options)
        with _open_connection(options) as server:
            server.send_message(msg)
    # ValueError covers header injection and encoding problems while building the message
    except (smtplib.SMTPException, OSError, ValueError) as exc:
        raise NotificationDeliveryFailed(f"Failed to send email to {to_email}: {exc}") from exc
    logger.info(f"Sent email to {to_email} with subject '{subject}'")


def check_smtp_connection(options: SMTPOptions) -> None:
    """Connect and authenticate without sending anything."""
    try:
        with _open_connection(options) as server:
            server.noop()
    except (smtplib.SMTPException, OSError) as exc:
        raise NotificationDeliveryFailed(f"SMTP connection to {options.host}:{options.port} failed: {exc}") from exc
