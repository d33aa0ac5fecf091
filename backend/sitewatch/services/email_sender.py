"""Email sender service - delivers alert messages via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, List
from dataclasses import dataclass

from ..config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: str = ""
    password: str = ""
    use_tls: bool = True
    from_address: str = ""

    @classmethod
    def from_settings(cls) -> "EmailConfig":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.alert_email_from,
        )


class EmailSenderService:
    """Fire-and-forget message delivery over SMTP.

    ``send`` never raises: delivery problems are logged and reported as False.
    """

    def __init__(self, config: Optional[EmailConfig] = None):
        self._config = config

    @property
    def config(self) -> EmailConfig:
        return self._config or EmailConfig.from_settings()

    def _parse_recipients(self, to_address: str) -> List[str]:
        """Parse comma-separated email addresses into a list."""
        if not to_address:
            return []
        return [addr.strip() for addr in to_address.split(",") if addr.strip()]

    async def send(self, to_address: str, subject: str, body: str) -> bool:
        """Send a plain-text email. Returns True on success, False on failure."""
        config = self.config

        if not config.host:
            logger.warning(f"Email not configured - missing SMTP host, dropping '{subject}'")
            return False

        recipients = self._parse_recipients(to_address)
        if not recipients:
            logger.warning(f"No valid recipients found in '{to_address}'")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = config.from_address or config.username
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(body, "plain"))

        try:
            # smtplib is blocking; keep it off the event loop
            await asyncio.to_thread(self._deliver, config, recipients, msg.as_string())
            logger.info(f"Email sent to {len(recipients)} recipient(s): {subject}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{config.username}': {e}")
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipients refused by server: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {type(e).__name__}: {e}")
            return False
        except (ConnectionRefusedError, TimeoutError) as e:
            logger.error(f"Could not reach {config.host}:{config.port}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error sending email: {type(e).__name__}: {e}")
            return False

    def _deliver(self, config: EmailConfig, recipients: List[str], message: str):
        from_addr = config.from_address or config.username
        with smtplib.SMTP(config.host, config.port, timeout=30) as server:
            if config.use_tls:
                server.starttls(context=ssl.create_default_context())
            if config.username and config.password:
                server.login(config.username, config.password)
            server.sendmail(from_addr, recipients, message)


# Global instance
email_sender_service = EmailSenderService()
