"""Share-notification e-mail sent after a transfer completes."""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import List, Optional

import aiosmtplib

from common.logging_config import get_logger
from server import config
from server.exceptions import BadRequestError

logger = get_logger(__name__)

SENDER_NAME = "SendShare Transfer"


def _format_size(size: Optional[int]) -> str:
    if size is None:
        return ""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return ""


class NotificationService:
    def __init__(self):
        self.smtp_host = config.SMTP_HOST
        self.smtp_port = config.SMTP_PORT
        self.smtp_username = config.SMTP_USER
        self.smtp_password = config.SMTP_PASS
        self.smtp_use_tls = config.SMTP_USE_TLS
        self.from_email = config.SMTP_FROM

    @property
    def configured(self) -> bool:
        return bool(self.smtp_username and self.smtp_password)

    def build_message(
        self,
        recipient_email: str,
        files: List[dict],
        share_link: Optional[str] = None,
        message: Optional[str] = None,
    ) -> MIMEMultipart:
        count = len(files)
        plural = "s" if count != 1 else ""

        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"Files Shared: {count} file{plural}"
        msg["From"] = f'"{SENDER_NAME}" <{self.from_email}>'
        msg["To"] = recipient_email

        lines = [f"{SENDER_NAME} has sent you {count} file{plural}.", ""]
        if share_link:
            lines += [f"Download all files: {share_link}", ""]
        lines.append("Files included:")
        lines += [f"  - {f.get('name')} {_format_size(f.get('size'))}".rstrip() for f in files]
        if message:
            lines += ["", f"Message: {message}"]
        body_text = "\n".join(lines)

        items = "".join(f"<li>{escape(str(f.get('name')))}</li>" for f in files)
        link = f'<p><a href="{escape(share_link)}">Download All Files</a></p>' if share_link else ""
        note = f"<p><strong>Message:</strong> {escape(message)}</p>" if message else ""
        body_html = (
            f"<h2>Files have been shared with you</h2>"
            f"<p><strong>{SENDER_NAME}</strong> has sent you {count} file{plural}.</p>"
            f"{link}<p><strong>Files included:</strong></p><ul>{items}</ul>{note}"
        )

        msg.attach(MIMEText(body_text, "plain"))
        msg.attach(MIMEText(body_html, "html"))
        return msg

    async def send_share_email(
        self,
        recipient_email: str,
        files: List[dict],
        share_link: Optional[str] = None,
        message: Optional[str] = None,
    ) -> bool:
        """
        Send the share e-mail. Without SMTP credentials the message is only logged.

        Returns:
            True when handed to an SMTP server, False in dev mode
        """
        if not recipient_email or not files:
            raise BadRequestError("Missing required fields or invalid files list")

        msg = self.build_message(recipient_email, files, share_link, message)

        if not self.configured:
            logger.warning("No SMTP credentials found. Logging share e-mail instead (dev mode)")
            logger.info(f"[Email] To: {recipient_email} Subject: {msg['Subject']} Link: {share_link}")
            return False

        async with aiosmtplib.SMTP(
            hostname=self.smtp_host,
            port=self.smtp_port,
            use_tls=self.smtp_use_tls
        ) as smtp:
            await smtp.login(self.smtp_username, self.smtp_password)
            await smtp.send_message(msg)

        logger.info(f"Share e-mail sent [to={recipient_email}] [files={len(files)}]")
        return True
