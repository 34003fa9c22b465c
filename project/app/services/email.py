# app/services/email.py

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from app.config import settings


class EmailSender:
    def __init__(self):
        self.smtp_server = settings.EMAIL_SERVER_HOST
        self.smtp_port = settings.EMAIL_SERVER_PORT
        self.smtp_username = settings.EMAIL_SERVER_USER
        self.smtp_password = settings.EMAIL_SERVER_PASSWORD
        self.from_email = settings.EMAIL_FROM

    @property
    def enabled(self) -> bool:
        return bool(self.smtp_server)

    def build_sign_in_message(self, to_email: str, url: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = "Sign in to Buyer Lead Intake"

        text = f"Sign in to Buyer Lead Intake:\n{url}\n\nIf you did not request this email you can safely ignore it."
        html = f"""
            <html>
            <body style="font-family: Arial, sans-serif; font-size: 14px; color: #333333;">
                <p>Hello,</p>
                <p><a href="{url}">Sign in to Buyer Lead Intake</a></p>
                <p>If you did not request this email you can safely ignore it.</p>
            </body>
            </html>
        """
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))
        return msg

    def send(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
            if self.smtp_username:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
            server.send_message(msg)


async def send_magic_link_email(to_email: str, url: str, request: Request) -> None:
    """
    Отправляет ссылку для входа. Если SMTP-хост не задан, ссылка
    пишется в лог (консольный режим для разработки).
    """
    log = request.app.state.log
    sender = EmailSender()

    if not sender.enabled:
        await log.log_info("auth", "Ссылка для входа (консольный режим)", {"email": to_email, "url": url})
        return

    msg = sender.build_sign_in_message(to_email, url)
    await run_in_threadpool(sender.send, msg)
    await log.log_info("auth", "Ссылка для входа отправлена", {"email": to_email})
