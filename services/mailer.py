"""Transactional email over SMTP."""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Mapping, Optional

from utils.errors import MailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailTemplate:
    subject: str
    path: str
    intro: str
    action: str


TEMPLATES = {
    "verify_email": MailTemplate(
        subject="Account Verification",
        path="/verify/{token}",
        intro="Click the link below to verify your account:",
        action="Verify Account",
    ),
    "reset_password": MailTemplate(
        subject="Password Reset",
        path="/reset-password/{token}",
        intro="Click the link below to reset your password:",
        action="Reset Password",
    ),
}


class SMTPMailer:
    """Render token-bearing links and hand them to an SMTP server."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        use_tls: bool = True,
        use_ssl: bool = False,
        timeout: int = 10,
        frontend_url: str = "http://localhost:3000",
        suppress_send: bool = False,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.timeout = timeout
        self.frontend_url = frontend_url.rstrip("/")
        self.suppress_send = suppress_send

    @classmethod
    def from_config(cls, config: Mapping) -> "SMTPMailer":
        return cls(
            config.get("SMTP_HOST", "localhost"),
            int(config.get("SMTP_PORT", 587)),
            username=config.get("SMTP_USERNAME"),
            password=config.get("SMTP_PASSWORD"),
            sender=config.get("MAIL_DEFAULT_SENDER"),
            use_tls=bool(config.get("SMTP_USE_TLS", True)),
            use_ssl=bool(config.get("SMTP_USE_SSL", False)),
            timeout=int(config.get("SMTP_TIMEOUT", 10)),
            frontend_url=config.get("FRONTEND_URL", "http://localhost:3000"),
            suppress_send=bool(config.get("MAIL_SUPPRESS_SEND", False)),
        )

    def build_link(self, kind: str, token: str) -> str:
        template = self._template(kind)
        return self.frontend_url + template.path.format(token=token)

    def build_message(self, kind: str, recipient: str, token: str) -> EmailMessage:
        template = self._template(kind)
        link = self.build_link(kind, token)

        message = EmailMessage()
        message["Subject"] = template.subject
        message["From"] = self.sender or "no-reply@localhost"
        message["To"] = recipient
        message.set_content(f"{template.intro}\n\n{link}\n")
        message.add_alternative(
            f"<p>{escape(template.intro)}</p>"
            f'<a href="{escape(link)}">{escape(template.action)}</a>',
            subtype="html",
        )
        return message

    def send(self, kind: str, recipient: str, token: str) -> None:
        """Send a ``kind`` message with a link embedding ``token`` to ``recipient``."""

        message = self.build_message(kind, recipient, token)
        if self.suppress_send:
            logger.info("Mail suppressed: %s to %s", kind, recipient)
            return

        smtp_class = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        try:
            with smtp_class(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls and not self.use_ssl:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send %s email to %s: %s", kind, recipient, exc)
            raise MailDeliveryError() from exc

        logger.info("Sent %s email to %s", kind, recipient)

    @staticmethod
    def _template(kind: str) -> MailTemplate:
        try:
            return TEMPLATES[kind]
        except KeyError:
            raise ValueError(f"Unknown mail kind: {kind!r}")
