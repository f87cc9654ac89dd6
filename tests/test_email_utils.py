import pytest

import app.email_utils as email_utils


class FakeSMTP:
    sent = []

    def __init__(self, server, port):
        self.server = server
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.user = user

    def sendmail(self, from_addr, to_addrs, body):
        FakeSMTP.sent.append((self.server, from_addr, to_addrs, body))


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(email_utils.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setenv("EMAIL_USER", "bot@gmail.com")
    monkeypatch.setenv("EMAIL_PASSWORD", "app-pass")
    monkeypatch.setenv("SMTP_SERVER", "smtp.gmail.com")
    monkeypatch.delenv("EMAIL_FROM", raising=False)
    return FakeSMTP


def test_effective_from_prefers_gmail_user():
    assert email_utils._effective_from("alerts@x.com", "bot@gmail.com", "smtp.gmail.com") == "bot@gmail.com"
    assert email_utils._effective_from("alerts@x.com", "bot@x.com", "smtp.x.com") == "alerts@x.com"
    assert email_utils._effective_from(None, None, "smtp.x.com") == email_utils.DEFAULT_FROM


def test_missing_credentials_raise(monkeypatch):
    monkeypatch.delenv("EMAIL_USER", raising=False)
    monkeypatch.delenv("EMAIL_PASSWORD", raising=False)

    with pytest.raises(RuntimeError):
        email_utils.send_text_email("owner@example.com", "subject", "body")


def test_auth_failure_notice_includes_reason(smtp):
    email_utils.notify_auth_failure("owner@example.com", 7, 3, "wrong password")

    assert len(smtp.sent) == 1
    server, from_addr, to_addrs, body = smtp.sent[0]
    assert from_addr == "bot@gmail.com"
    assert to_addrs == ["owner@example.com"]
    assert "wrong password" in body
    assert "Failed attempts: 3" in body


def test_verification_notice_is_sent(smtp):
    email_utils.notify_verification_needed("owner@example.com", 7)

    assert len(smtp.sent) == 1
    assert "verification code" in smtp.sent[0][3]
