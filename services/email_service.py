"""Best-effort email delivery.

``EmailSender.send`` is the transport contract: it returns True on success,
False on failure, and never raises. ``EmailService`` renders the messages and
decides whether a send is awaited or handed to the background executor.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor

import requests

logger = logging.getLogger(__name__)


class EmailSender:
    def send(self, to: str, subject: str, body: str) -> bool:
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    """Development transport: writes the message to the log instead of sending it."""

    def send(self, to: str, subject: str, body: str) -> bool:
        logger.info("Email to %s: %s\n%s", to, subject, body, extra={"email": to})
        return True


class ResendEmailSender(EmailSender):
    def __init__(self, api_key: str, sender: str, url: str = "https://api.resend.com/emails", timeout: float = 10.0):
        self._api_key = api_key
        self._sender = sender
        self._url = url
        self._timeout = timeout

    def send(self, to: str, subject: str, body: str) -> bool:
        try:
            resp = requests.post(
                self._url,
                json={"from": self._sender, "to": [to], "subject": subject, "text": body},
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error("Email transport error: %s", e, extra={"email": to})
            return False
        if resp.status_code // 100 != 2:
            logger.error(
                "Email rejected by provider (status %s): %s", resp.status_code, resp.text[:500],
                extra={"email": to},
            )
            return False
        logger.info("Email sent: %s", subject, extra={"email": to})
        return True


class EmailService:
    def __init__(
        self,
        sender: EmailSender,
        app_name: str = "Todo App",
        code_expiry_minutes: int = 15,
        max_workers: int = 2,
    ):
        self._sender = sender
        self._app_name = app_name
        self._code_expiry_minutes = code_expiry_minutes
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="email")

    def send(self, to: str, subject: str, body: str) -> bool:
        try:
            ok = self._sender.send(to, subject, body)
        except Exception:
            logger.exception("Email sender raised", extra={"email": to})
            return False
        if not ok:
            logger.warning("Email delivery failed: %s", subject, extra={"email": to})
        return ok

    def send_async(self, to: str, subject: str, body: str) -> Future:
        """Queue a send; the caller never waits on or sees its outcome."""
        return self._executor.submit(self.send, to, subject, body)

    def send_verification_email(self, to: str, username: str, code: str) -> Future:
        subject = f"Verify Your Email - {self._app_name}"
        body = (
            f"Hello {username},\n\n"
            f"Welcome to {self._app_name}! Please verify your email address by using the following code:\n\n"
            f"Verification Code: {code}\n\n"
            f"This code will expire in {self._code_expiry_minutes} minutes.\n\n"
            "If you didn't create an account with us, please ignore this email.\n\n"
            f"Best regards,\n{self._app_name} Team\n"
        )
        return self.send_async(to, subject, body)

    def send_password_reset_email(self, to: str, username: str, code: str) -> bool:
        subject = f"Password Reset - {self._app_name}"
        body = (
            f"Hello {username},\n\n"
            f"You requested a password reset for your {self._app_name} account.\n\n"
            f"Reset Code: {code}\n\n"
            f"This code will expire in {self._code_expiry_minutes} minutes.\n\n"
            "If you didn't request this password reset, please ignore this email.\n\n"
            f"Best regards,\n{self._app_name} Team\n"
        )
        return self.send(to, subject, body)

    def send_todo_reminder_email(self, to: str, username: str, title: str, due: str) -> bool:
        subject = f"Todo Reminder - {title}"
        body = (
            f"Hello {username},\n\n"
            "This is a friendly reminder that you have a todo item due soon:\n\n"
            f"Todo: {title}\n"
            f"Due: {due}\n\n"
            "Don't forget to complete it on time!\n\n"
            f"Best regards,\n{self._app_name} Team\n"
        )
        return self.send(to, subject, body)

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
