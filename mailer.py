import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import Settings, get_settings
from formatting import format_currency


logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates" / "emails"

templates = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)
templates.filters["currency"] = format_currency


def render_email(template: str, **context: object) -> str:
    return templates.get_template(template).render(**context)


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: Optional[str] = None


class Mailer:
    def send(self, message: OutgoingEmail) -> None:
        raise NotImplementedError


class LogMailer(Mailer):
    def send(self, message: OutgoingEmail) -> None:
        logger.info(f"mail_skipped: to={message.to} subject={message.subject!r}")


class SmtpMailer(Mailer):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def send(self, message: OutgoingEmail) -> None:
        email = EmailMessage()
        email["From"] = self.settings.mail_from
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.text or "This message requires an HTML mail client.")
        email.add_alternative(message.html, subtype="html")

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as smtp:
            smtp.starttls()
            if self.settings.smtp_user:
                smtp.login(self.settings.smtp_user, self.settings.smtp_password or "")
            smtp.send_message(email)
        logger.info(f"mail_sent: to={message.to} subject={message.subject!r}")


def get_mailer() -> Mailer:
    settings = get_settings()
    if settings.smtp_host:
        return SmtpMailer(settings)
    return LogMailer()
