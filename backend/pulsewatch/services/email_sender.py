"""Email sender service - sends alerts via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Tuple

from ..config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DOWN = "monitor-down"
TEMPLATE_RECOVERY = "monitor-recovery"
TEMPLATE_TEST = "test"


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: str
    password: str
    use_tls: bool = True
    from_address: str = ""

    @classmethod
    def from_settings(cls) -> "EmailConfig":
        return cls(
            host=settings.smtp_host or "",
            port=settings.smtp_port,
            username=settings.smtp_username or "",
            password=settings.smtp_password or "",
            use_tls=settings.smtp_use_tls,
            from_address=settings.alert_email_from or "",
        )


def render_email(template_data: dict) -> Tuple[str, str]:
    """Render subject and plain-text body for a status change email."""
    template = template_data.get("template", TEMPLATE_DOWN)
    if template == TEMPLATE_TEST:
        return _render_test_email()

    name = template_data.get("monitor_name", "")
    is_down = template == TEMPLATE_DOWN

    subject = f"🔴 Monitor Down: {name}" if is_down else f"✅ Monitor Recovered: {name}"

    title = "Monitor Down" if is_down else "Monitor Recovered"
    lines = [
        title,
        "=" * 40,
        "",
        f"Monitor: {name}",
        f"URL: {template_data.get('url', '')}",
        f"Status: {str(template_data.get('status', '')).upper()}",
        f"Time: {template_data.get('timestamp', '')}",
    ]

    if is_down:
        lines.append(f"Error Details: {template_data.get('error_details') or 'Unknown error'}")
        if template_data.get("status_code") is not None:
            lines.append(f"Status Code: HTTP {template_data['status_code']}")
    elif template_data.get("downtime_duration"):
        lines.append(f"Downtime: {template_data['downtime_duration']}")

    lines.append("")
    lines.append("--")
    lines.append("This is an automated notification from your uptime monitoring system.")

    return subject, "\n".join(lines)


def _render_test_email() -> Tuple[str, str]:
    subject = "🔔 Test Notification"
    body = "\n".join([
        "Test Notification",
        "=" * 40,
        "",
        "Email alerts are configured correctly. You will receive a message here",
        "whenever one of your monitors goes down or recovers.",
        "",
        "--",
        "This is an automated notification from your uptime monitoring system.",
    ])
    return subject, body


class EmailSenderService:
    """Service for sending email alerts via SMTP."""

    def __init__(self, config: Optional[EmailConfig] = None):
        self._config = config

    @property
    def config(self) -> EmailConfig:
        return self._config or EmailConfig.from_settings()

    async def send_email(self, address: str, template_data: dict) -> bool:
        """Render and send a status email to one address.

        smtplib is blocking, so delivery runs in a worker thread.
        Returns True on success, False on failure.
        """
        config = self.config
        if not config.host or not address:
            logger.warning("Email not configured - missing SMTP host or recipient")
            return False

        subject, body = render_email(template_data)
        return await asyncio.to_thread(self._deliver, config, address, subject, body)

    def _deliver(self, config: EmailConfig, address: str, subject: str, body: str) -> bool:
        """Send an already-rendered message (blocking)."""
        logger.info(f"Attempting to send email: {subject}")
        logger.info(f"SMTP Config: host={config.host}, port={config.port}, tls={config.use_tls}, username={config.username or 'not set'}")

        from_addr = config.from_address or config.username

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = from_addr
            msg["To"] = address
            msg.attach(MIMEText(body, "plain"))

            with smtplib.SMTP(config.host, config.port, timeout=30) as server:
                if config.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if config.username and config.password:
                    server.login(config.username, config.password)
                server.sendmail(from_addr, [address], msg.as_string())

            logger.info(f"Email sent successfully to {address}: {subject}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{config.username}': {e.smtp_code}")
            return False
        except smtplib.SMTPConnectError as e:
            logger.error(f"Failed to connect to SMTP server {config.host}:{config.port}: {e}")
            return False
        except smtplib.SMTPServerDisconnected as e:
            logger.error(f"SMTP server unexpectedly disconnected: {e}")
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipients refused by server: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {type(e).__name__}: {e}")
            return False
        except OSError as e:
            # Connection refused, timeouts, DNS failures
            logger.error(f"Network error talking to {config.host}:{config.port}: {type(e).__name__}: {e}")
            return False


# Global instance
email_sender_service = EmailSenderService()
