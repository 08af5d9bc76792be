"""
Transactional email: verification, password reset and welcome messages.

Producers call the queue_* methods, which only build an EmailTask and
hand it to the EmailQueue. A background worker pulls tasks and calls
EmailService.handle(), which renders and delivers over SMTP. Delivery
is best-effort: failures are logged and never reach the producer.
"""
from __future__ import annotations

import logging
import queue
import smtplib
import ssl
import threading
from dataclasses import dataclass
from datetime import timedelta
from email.message import EmailMessage
from typing import Callable, Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

VERIFICATION = "verification"
RESET = "reset"
WELCOME = "welcome"


def describe_ttl(ttl: timedelta) -> str:
    """Human wording for a token lifetime, e.g. "24 hours" or "30 minutes"."""
    seconds = int(ttl.total_seconds())
    for unit, size in (("hour", 3600), ("minute", 60)):
        if seconds >= size and seconds % size == 0:
            count = seconds // size
            return f"{count} {unit}" + ("" if count == 1 else "s")
    return f"{seconds} seconds"


@dataclass(frozen=True)
class EmailTask:
    kind: str
    email: str
    username: str
    token: Optional[str] = None
    roles: Optional[str] = None


class EmailQueue:
    """
    In-process task queue with one daemon worker thread.

    With sync=True tasks are handled on the caller's thread, which is what
    the test configuration uses.
    """

    _STOP = object()

    def __init__(self, handler: Callable[[EmailTask], None], sync: bool = False):
        self._handler = handler
        self._sync = sync
        self._queue: "queue.Queue" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        if self._sync:
            return
        with self._lock:
            if self._worker and self._worker.is_alive():
                return
            self._worker = threading.Thread(target=self._run, name="email-queue", daemon=True)
            self._worker.start()
            logger.info("Email queue worker started")

    def stop(self, timeout: float = 5.0) -> None:
        """Let the worker finish what is already queued, then end it."""
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker and worker.is_alive():
            self._queue.put(self._STOP)
            worker.join(timeout)

    def submit(self, task: EmailTask) -> None:
        if self._sync:
            self._dispatch(task)
            return
        self.start()
        self._queue.put(task)

    def join(self) -> None:
        """Block until every submitted task has been handled."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            task = self._queue.get()
            try:
                if task is self._STOP:
                    return
                self._dispatch(task)
            finally:
                self._queue.task_done()

    def _dispatch(self, task: EmailTask) -> None:
        try:
            self._handler(task)
        except Exception:
            logger.exception("Email task %s for %s failed", task.kind, task.email)


class EmailService:
    def __init__(
        self,
        *,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        smtp_use_tls: bool = True,
        from_email: str = "noreply@usermanagement.local",
        base_url: str = "http://localhost:8000",
        verification_ttl: timedelta = timedelta(hours=24),
        reset_ttl: timedelta = timedelta(hours=1),
        sync: bool = False,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_email = from_email
        self.base_url = base_url.rstrip("/")
        self.verification_ttl = verification_ttl
        self.reset_ttl = reset_ttl
        self.queue = EmailQueue(self.handle, sync=sync)
        logger.info("EmailService initialized with from: '%s', base_url: '%s'", from_email, self.base_url)

    @classmethod
    def from_config(cls, config) -> "EmailService":
        return cls(
            smtp_host=config.get("MAIL_SERVER", ""),
            smtp_port=config.get("MAIL_PORT", 587),
            smtp_user=config.get("MAIL_USERNAME", ""),
            smtp_password=config.get("MAIL_PASSWORD", ""),
            smtp_use_tls=config.get("MAIL_USE_TLS", True),
            from_email=config.get("MAIL_FROM", "noreply@usermanagement.local"),
            base_url=config.get("APP_BASE_URL", "http://localhost:8000"),
            verification_ttl=config.get("VERIFICATION_TOKEN_EXPIRES", timedelta(hours=24)),
            reset_ttl=config.get("PASSWORD_RESET_TOKEN_EXPIRES", timedelta(hours=1)),
            sync=config.get("EMAIL_QUEUE_SYNC", False),
        )

    def shutdown(self) -> None:
        """Deliver whatever is still queued. Registered to run at interpreter exit."""
        self.queue.stop()

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    # Producers

    def queue_verification_email(self, user) -> None:
        logger.info("Queueing verification email for user: %s", user.username)
        self.queue.submit(EmailTask(VERIFICATION, user.email, user.username, token=user.verification_token))

    def queue_password_reset_email(self, user) -> None:
        logger.info("Queueing password reset email for user: %s", user.username)
        self.queue.submit(EmailTask(RESET, user.email, user.username, token=user.password_reset_token))

    def queue_welcome_email(self, user) -> None:
        logger.info("Queueing welcome email for user: %s", user.username)
        roles = ", ".join(user.roles or []) or "USER"
        self.queue.submit(EmailTask(WELCOME, user.email, user.username, roles=roles))

    # Consumer

    def handle(self, task: EmailTask) -> None:
        senders = {
            VERIFICATION: self.send_verification_email,
            RESET: self.send_password_reset_email,
            WELCOME: self.send_welcome_email,
        }
        sender = senders.get(task.kind)
        if sender is None:
            logger.warning("Dropping email task of unknown kind: %s", task.kind)
            return
        sender(task)

    def _link(self, path: str, task: EmailTask) -> str:
        return f"{self.base_url}{path}?{urlencode({'email': task.email, 'token': task.token})}"

    def send_verification_email(self, task: EmailTask) -> bool:
        body = (
            f"Hi {task.username},\n\n"
            "Thank you for registering!\n\n"
            "Please click the following link to verify your email address:\n"
            f"{self._link('/verify-email', task)}\n\n"
            f"Or use this verification code: {task.token}\n\n"
            f"This link will expire in {describe_ttl(self.verification_ttl)}.\n\n"
            "If you didn't register for an account, please ignore this email.\n"
        )
        sent = self.deliver(task.email, "Verify your email", body)
        if not sent:
            logger.warning("Development - verification token for %s: %s", task.email, task.token)
        return sent

    def send_password_reset_email(self, task: EmailTask) -> bool:
        body = (
            f"Hi {task.username},\n\n"
            "You requested a password reset for your account.\n\n"
            "Please click the following link to reset your password:\n"
            f"{self._link('/reset-password', task)}\n\n"
            f"Or use this reset code: {task.token}\n\n"
            f"This link will expire in {describe_ttl(self.reset_ttl)}.\n\n"
            "If you didn't request a password reset, please ignore this email.\n"
        )
        sent = self.deliver(task.email, "Password reset", body)
        if not sent:
            logger.warning("Development - password reset token for %s: %s", task.email, task.token)
        return sent

    def send_welcome_email(self, task: EmailTask) -> bool:
        body = (
            f"Hi {task.username},\n\n"
            "Your email has been successfully verified. You can now log in.\n\n"
            f"Login at: {self.base_url}/apidocs/\n\n"
            f"Your role: {task.roles}\n"
        )
        return self.deliver(task.email, "Welcome!", body)

    def deliver(self, to_email: str, subject: str, body: str) -> bool:
        """
        Send one plain-text message. Returns False (after logging) on any
        failure or when SMTP is not configured.
        """
        if not self.is_configured:
            logger.info("Email not sent (SMTP not configured): to=%s subject=%s", to_email, subject)
            return False

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg.set_content(body)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                if self.smtp_use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email to %s", to_email)
            return False
        logger.info("Email sent to %s: %s", to_email, subject)
        return True
