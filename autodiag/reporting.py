"""
Delivery of the rendered diagnostic report by e-mail.

The report goes out as the HTML body (stylesheet inlined) with a short plain
text alternative, and the saved file is attached as ``Raport_<VIN>.html``.
"""
import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

from config import SmtpConfig

from .models import RenderedReport

logger = logging.getLogger(__name__)

PLAIN_BODY = "Gasesti raportul in corpul emailului si atasat ca .html"


def build_message(
    rendered: RenderedReport,
    sender: str,
    recipient: str,
    subject: str,
    attachment: Optional[Path] = None,
) -> MIMEMultipart:
    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = recipient

    body = MIMEMultipart("alternative")
    body.attach(MIMEText(PLAIN_BODY, "plain", "utf-8"))
    body.attach(MIMEText(rendered.email_html, "html", "utf-8"))
    msg.attach(body)

    if attachment is not None:
        content = attachment.read_bytes()
        name = attachment.name
    else:
        content = rendered.html.encode("utf-8")
        name = rendered.file_name
    part = MIMEApplication(content, _subtype="html")
    part.add_header("Content-Disposition", "attachment", filename=name)
    msg.attach(part)
    return msg


class ReportMailer:
    """Send rendered reports over SMTP."""

    def __init__(self, config: SmtpConfig, timeout: int = 30):
        self.config = config
        self.timeout = timeout

    def send(self, rendered: RenderedReport, out_path: Optional[Path] = None) -> bool:
        """
        Send one report.

        Args:
            rendered: The rendered artifact; email_html becomes the body.
            out_path: Saved file to attach. Without it the in-memory html is attached.

        Returns:
            True if the message was handed to the SMTP server
        """
        cfg = self.config
        if not cfg.user or not cfg.password:
            logger.error("Email credentials not configured (SMTP_USER, SMTP_PASS)")
            return False
        if not cfg.recipient:
            logger.error("No recipient configured (MAIL_TO)")
            return False

        msg = build_message(rendered, cfg.user, cfg.recipient, cfg.subject, out_path)

        try:
            if cfg.secure:
                server = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(cfg.host, cfg.port, timeout=self.timeout)
                server.starttls()

            with server:
                server.login(cfg.user, cfg.password)
                server.send_message(msg)

            logger.info(f"Email sent to {cfg.recipient} ({rendered.file_name})")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {e}")
            return False
