import pytest
import requests

from conftest import make_settings
from restic_orchestrator.config.loader import SmtpSettings
from restic_orchestrator.notification import report_sender
from restic_orchestrator.notification.report_sender import (
    CompositeReportSender,
    EmailReportSender,
    Severity,
    WebhookReportSender,
    should_send_report,
)


@pytest.mark.parametrize("has_errors, send_on_success, previous_failed, expected", [
    (True, False, False, True),
    (False, True, False, True),
    (False, False, True, True),
    (False, False, False, False),
])
def test_should_send_report(has_errors, send_on_success, previous_failed, expected):
    assert should_send_report(has_errors, send_on_success, previous_failed) is expected


class FakeResponse:
    def __init__(self, ok=True, status_code=200, text=""):
        self.ok = ok
        self.status_code = status_code
        self.text = text


def test_webhook_posts_report_with_truncated_attachment(tmp_path, monkeypatch):
    posted = []

    def fake_post(url, json=None, headers=None, timeout=None):
        posted.append((url, json, headers))
        return FakeResponse()

    monkeypatch.setattr(report_sender.requests, "post", fake_post)
    attachment = tmp_path / "run.err.txt"
    attachment.write_text("a" * 50 + "tail", encoding="utf-8")
    sender = WebhookReportSender("https://hooks.example.com/x", token="t0k", max_attachment_chars=4)

    assert sender.send_report("Backup failed", "body", attachment, Severity.ERROR)

    url, data, headers = posted[0]
    assert url == "https://hooks.example.com/x"
    assert data["title"] == "Backup failed"
    assert data["data"] == {"importance": "error"}
    assert data["attachment"] == {"name": "run.err.txt", "content": "tail"}
    assert headers["Authorization"] == "Bearer t0k"


def test_webhook_network_error_returns_false(monkeypatch):
    def failing_post(*args, **kwargs):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(report_sender.requests, "post", failing_post)

    assert not WebhookReportSender("https://hooks.example.com/x").send_report("s", "b")


def test_email_report_attaches_error_log(tmp_path, monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host = host

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self, context=None):
            sent.append("starttls")

        def login(self, username, password):
            sent.append(("login", username, password))

        def sendmail(self, sender, recipients, message):
            sent.append(("sendmail", sender, recipients, message))

    monkeypatch.setattr(report_sender.smtplib, "SMTP", FakeSMTP)
    attachment = tmp_path / "run.err.txt"
    attachment.write_text("engine exploded", encoding="utf-8")
    smtp = SmtpSettings(
        host="mail.example.com", username="backup@example.com", password="pw",
        sender="backup@example.com", recipients=("ops@example.com",),
    )

    assert EmailReportSender(smtp).send_report("Backup failed", "body", attachment, Severity.ERROR)

    assert sent[0] == "starttls"
    assert sent[1] == ("login", "backup@example.com", "pw")
    _, sender, recipients, message = sent[2]
    assert recipients == ["ops@example.com"]
    assert "Subject: Backup failed" in message
    assert 'filename="run.err.txt"' in message


def test_composite_without_transports_only_logs(tmp_path):
    reporter = CompositeReportSender.from_settings(make_settings(tmp_path))

    assert reporter.senders == []
    assert not reporter.send_report("Backup succeeded", "body", None, Severity.INFO)


def test_composite_builds_webhook_from_settings(tmp_path):
    settings = make_settings(
        tmp_path, webhook_url="https://hooks.example.com/x", environment={"WEBHOOK_TOKEN": "abc"}
    )

    (sender,) = CompositeReportSender.from_settings(settings).senders

    assert isinstance(sender, WebhookReportSender)
    assert sender.token == "abc"
