import atexit
import logging
import threading
from datetime import timedelta

import pytest

from api import create_app
from services.email import (
    RESET,
    VERIFICATION,
    WELCOME,
    EmailQueue,
    EmailService,
    EmailTask,
    describe_ttl,
)


@pytest.fixture
def mailer(monkeypatch):
    """An EmailService whose deliver() records messages."""
    service = EmailService(base_url="https://users.example.com/", sync=True)
    sent = []

    def fake_deliver(to_email, subject, body):
        sent.append((to_email, subject, body))
        return True

    monkeypatch.setattr(service, "deliver", fake_deliver)
    service.sent = sent
    return service


class TestEmailService:
    def test_dispatch_by_kind(self, mailer):
        """Each task kind renders its own subject."""
        mailer.handle(EmailTask(VERIFICATION, "a@x.com", "alice", token="tok1"))
        mailer.handle(EmailTask(RESET, "a@x.com", "alice", token="tok2"))
        mailer.handle(EmailTask(WELCOME, "a@x.com", "alice", roles="USER"))
        assert [subject for _, subject, _ in mailer.sent] == ["Verify your email", "Password reset", "Welcome!"]

    def test_links_carry_email_and_token(self, mailer):
        mailer.handle(EmailTask(VERIFICATION, "a@x.com", "alice", token="tok1"))
        body = mailer.sent[0][2]
        assert "https://users.example.com/verify-email?email=a%40x.com&token=tok1" in body

    def test_unknown_kind_is_dropped(self, mailer, caplog):
        with caplog.at_level(logging.WARNING, logger="services.email"):
            mailer.handle(EmailTask("newsletter", "a@x.com", "alice"))
        assert mailer.sent == []
        assert "unknown kind" in caplog.text

    def test_deliver_without_smtp_returns_false(self):
        """Unconfigured SMTP logs instead of sending."""
        service = EmailService()
        assert service.is_configured is False
        assert service.deliver("a@x.com", "hi", "body") is False

    def test_failed_delivery_logs_the_token(self, caplog):
        """Without SMTP the verification code is still recoverable from the log."""
        service = EmailService(sync=True)
        with caplog.at_level(logging.WARNING, logger="services.email"):
            sent = service.send_verification_email(EmailTask(VERIFICATION, "a@x.com", "alice", token="tok1"))
        assert sent is False
        assert "tok1" in caplog.text


class TestEmailQueue:
    def test_sync_queue_runs_inline(self):
        handled = []
        q = EmailQueue(handled.append, sync=True)
        q.submit(EmailTask(WELCOME, "a@x.com", "alice"))
        assert len(handled) == 1

    def test_worker_thread_handles_tasks(self):
        """Tasks submitted to the async queue run on the worker thread."""
        threads = []
        q = EmailQueue(lambda task: threads.append(threading.current_thread().name))
        try:
            for i in range(3):
                q.submit(EmailTask(WELCOME, f"u{i}@x.com", f"u{i}"))
            q.join()
        finally:
            q.stop()
        assert threads == ["email-queue"] * 3

    def test_handler_errors_are_logged_not_raised(self, caplog):
        def boom(task):
            raise RuntimeError("smtp exploded")

        q = EmailQueue(boom, sync=True)
        with caplog.at_level(logging.ERROR, logger="services.email"):
            q.submit(EmailTask(RESET, "a@x.com", "alice", token="t"))
        assert "Email task reset for a@x.com failed" in caplog.text

    def test_stop_drains_pending_tasks(self):
        """Tasks queued before stop() are still delivered."""
        release = threading.Event()
        handled = []

        def slow(task):
            release.wait(2)
            handled.append(task.email)

        q = EmailQueue(slow)
        for i in range(3):
            q.submit(EmailTask(WELCOME, f"u{i}@x.com", f"u{i}"))
        threading.Timer(0.05, release.set).start()
        q.stop()
        assert handled == ["u0@x.com", "u1@x.com", "u2@x.com"]

    def test_app_drains_queue_at_exit(self, monkeypatch):
        registered = []
        monkeypatch.setattr(atexit, "register", registered.append)
        app = create_app("test")
        assert app.extensions["user_management"].email.shutdown in registered


class TestExpiryWording:
    @pytest.mark.parametrize(
        "ttl, words",
        [
            (timedelta(hours=24), "24 hours"),
            (timedelta(hours=1), "1 hour"),
            (timedelta(minutes=30), "30 minutes"),
            (timedelta(seconds=90), "90 seconds"),
        ],
    )
    def test_describe_ttl(self, ttl, words):
        assert describe_ttl(ttl) == words

    def test_bodies_follow_configured_lifetimes(self, monkeypatch):
        """Configured token lifetimes show up in the message text."""
        service = EmailService.from_config(
            {
                "VERIFICATION_TOKEN_EXPIRES": timedelta(hours=48),
                "PASSWORD_RESET_TOKEN_EXPIRES": timedelta(minutes=30),
                "EMAIL_QUEUE_SYNC": True,
            }
        )
        bodies = []
        monkeypatch.setattr(service, "deliver", lambda to, subject, body: bodies.append(body) or True)

        service.handle(EmailTask(VERIFICATION, "a@x.com", "alice", token="t1"))
        service.handle(EmailTask(RESET, "a@x.com", "alice", token="t2"))
        assert "expire in 48 hours" in bodies[0]
        assert "expire in 30 minutes" in bodies[1]
