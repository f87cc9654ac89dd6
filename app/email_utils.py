"""
SMTP helpers used to tell account owners about problems the sync cannot fix itself.
"""
from __future__ import annotations

import os
import smtplib
from email.mime.text import MIMEText

DEFAULT_FROM = "noreply@listbridge.app"


def _effective_from(email_from: str | None, email_user: str | None, smtp_server: str) -> str:
    # Gmail rewrites or rejects a From that differs from the authenticated user
    if "gmail" in (smtp_server or "").lower() and email_user:
        return email_user
    return email_from or email_user or DEFAULT_FROM


def send_text_email(to_email: str, subject: str, body: str) -> None:
    email_user = os.getenv("EMAIL_USER")
    email_password = os.getenv("EMAIL_PASSWORD")
    email_from = os.getenv("EMAIL_FROM")
    smtp_server = os.getenv("SMTP_SERVER", "smtp.gmail.com")
    smtp_port = int(os.getenv("SMTP_PORT", "587"))

    if not (email_user and email_password):
        raise RuntimeError("Email credentials not configured. Set EMAIL_USER and EMAIL_PASSWORD.")

    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = _effective_from(email_from, email_user, smtp_server)
    msg["To"] = to_email

    with smtplib.SMTP(smtp_server, smtp_port) as server:
        server.starttls()
        server.login(email_user, email_password)
        server.sendmail(msg["From"], [to_email], msg.as_string())


def auth_failure_message(account_id: int, failures: int, reason: str) -> str:
    lines = [
        "We could not sign in to your Amazon account to sync your Alexa shopping list.",
        "",
        f"Account: {account_id}",
        f"Failed attempts: {failures}",
        f"Last error: {reason}",
        "",
        "Syncing is paused until you reconnect Amazon with your current password.",
    ]
    return "\n".join(lines)


def verification_message(account_id: int) -> str:
    return "\n".join(
        [
            "Amazon is asking for a verification code before we can sync your shopping list.",
            "",
            f"Account: {account_id}",
            "",
            "Reconnect Amazon and enter the code Amazon sent you to resume syncing.",
        ]
    )


def notify_auth_failure(to_email: str, account_id: int, failures: int, reason: str) -> None:
    send_text_email(to_email, "Shopping list sync paused", auth_failure_message(account_id, failures, reason))


def notify_verification_needed(to_email: str, account_id: int) -> None:
    send_text_email(to_email, "Verification code needed", verification_message(account_id))


__all__ = [
    "send_text_email",
    "auth_failure_message",
    "verification_message",
    "notify_auth_failure",
    "notify_verification_needed",
]
