"""
SMTP mailer used to deliver access codes to approved borrowers.
"""

import html
import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr
from functools import lru_cache

from config import EMAIL_PASS, EMAIL_USER, MAIL_SENDER_NAME, SMTP_HOST, SMTP_PORT, SMTP_TIMEOUT
from errors import MailError

logger = logging.getLogger(__name__)


_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Loan approved</title></head>
<body style="margin:0;padding:20px;background-color:#f4f7fa;font-family:'Segoe UI',sans-serif;">
  <table role="presentation" style="max-width:600px;margin:0 auto;background-color:#ffffff;border-radius:12px;">
    <tr>
      <td style="background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);padding:40px 30px;text-align:center;">
        <h1 style="margin:0;color:#ffffff;font-size:28px;">Loan approved</h1>
      </td>
    </tr>
    <tr>
      <td style="padding:40px 30px 30px;">
        <h2 style="margin:0 0 20px 0;color:#1f2937;">Hello {user_name}!</h2>
        <p style="color:#4b5563;font-size:16px;">Your loan of <strong>"{book_title}"</strong> has been approved.</p>
        <p style="color:#4b5563;font-size:16px;">
          Enter the access code below on your <a href="{list_url}" style="color:#667eea;">loan list</a> to start reading.
        </p>
        <div style="background-color:#f0f9ff;border:2px dashed #93c5fd;padding:20px;border-radius:8px;text-align:center;">
          <p style="margin:0 0 10px 0;color:#1e40af;font-size:14px;font-weight:600;">YOUR ACCESS CODE</p>
          <p style="background-color:#dbeafe;color:#1e3a8a;padding:12px;border-radius:6px;font-family:'Courier New',monospace;font-size:15px;font-weight:bold;">{access_code}</p>
        </div>
        <p style="color:#78350f;font-size:14px;background-color:#fef3c7;border-radius:8px;padding:16px;">
          <strong>Important:</strong> do not share this code. It is valid until {expires_at}.
        </p>
      </td>
    </tr>
    <tr>
      <td style="background-color:#f9fafb;padding:30px;text-align:center;border-top:1px solid #e5e7eb;">
        <p style="margin:0;color:#6b7280;font-size:14px;">&copy; {year} {sender_name}</p>
      </td>
    </tr>
  </table>
</body>
</html>
"""

_TEXT_TEMPLATE = """\
Hello {user_name}!

Your loan of "{book_title}" has been approved.

Access code: {access_code}

Enter it on your loan list ({list_url}) to start reading.
The code is valid until {expires_at}. Do not share it.
"""


class SmtpMailer:
    def __init__(self, host: str, port: int, username: str, password: str,
                 sender_name: str = "Digital Library", timeout: int = 20):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender_name = sender_name
        self.timeout = timeout

    def build_access_code_message(self, to: str, user_name: str, book_title: str,
                                  access_code: str, list_url: str, expires_at: datetime) -> EmailMessage:
        expires_text = expires_at.strftime("%Y-%m-%d %H:%M UTC")
        msg = EmailMessage()
        msg["From"] = formataddr((self.sender_name, self.username))
        msg["To"] = to
        msg["Subject"] = f'Your loan of "{book_title}" has been approved'
        msg.set_content(_TEXT_TEMPLATE.format(
            user_name=user_name,
            book_title=book_title,
            access_code=access_code,
            list_url=list_url,
            expires_at=expires_text,
        ))
        msg.add_alternative(_HTML_TEMPLATE.format(
            user_name=html.escape(user_name),
            book_title=html.escape(book_title),
            access_code=access_code,
            list_url=html.escape(list_url, quote=True),
            expires_at=expires_text,
            year=datetime.now(timezone.utc).year,
            sender_name=html.escape(self.sender_name),
        ), subtype="html")
        return msg

    def send(self, msg: EmailMessage) -> None:
        if not self.username or not self.password:
            raise MailError("Mail relay is not configured (EMAIL_USER / EMAIL_PASS)")
        try:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Sending mail to {msg['To']} via {self.host}:{self.port} failed: {e}")
            raise MailError(f"Mail delivery failed: {e}") from e

    def send_access_code(self, to: str, user_name: str, book_title: str,
                         access_code: str, list_url: str, expires_at: datetime) -> None:
        msg = self.build_access_code_message(to, user_name, book_title, access_code, list_url, expires_at)
        self.send(msg)
        logger.info(f"Access code email sent to {to}")


@lru_cache(maxsize=1)
def get_mailer() -> SmtpMailer:
    return SmtpMailer(SMTP_HOST, SMTP_PORT, EMAIL_USER, EMAIL_PASS,
                      sender_name=MAIL_SENDER_NAME, timeout=SMTP_TIMEOUT)
