"""
auth/mailer.py -- Outbound delivery of verification and password-reset links.

SMTP via the standard library (smtplib + email.message). Configuration comes
from Settings (SMTP_HOST, SMTP_PORT, SMTP_SECURE, SMTP_USER, SMTP_PASS,
SMTP_FROM); SMTP_HOST, SMTP_PORT and SMTP_FROM are required.

Without SMTP configuration:
  production  -> MailNotConfiguredError; routes answer 503.
  development -> the link is written to the log so the flow can be finished
                 locally. Links carry live tokens, so this branch is never
                 reachable with DEBUG=false.

Sending blocks on network I/O; async callers use the *_async variants, which
run on Starlette's worker thread pool.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from starlette.concurrency import run_in_threadpool

from core.config import Settings

logger = logging.getLogger("livestation.mail")

_SMTP_TIMEOUT_SECONDS = 15


class MailNotConfiguredError(RuntimeError):
    pass


class Mailer:
    """Sends the two transactional emails the auth flows need."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def available(self) -> bool:
        """False when sending would raise MailNotConfiguredError."""
        return self._settings.smtp_configured or not self._settings.is_production

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def send_verification_email(self, to_email: str, username: str, verify_url: str) -> None:
        subject = "Confirme seu e-mail - LiveStation"
        text = (
            f"Oi, {username}.\n\n"
            f"Confirme seu e-mail acessando: {verify_url}\n\n"
            "Este link expira em 30 minutos."
        )
        self._deliver(to_email, subject, text, kind="verification", link=verify_url)

    def send_reset_password_email(self, to_email: str, username: str, reset_url: str) -> None:
        subject = "Redefinir senha - LiveStation"
        text = (
            f"Oi, {username}.\n\n"
            f"Para criar uma nova senha, acesse: {reset_url}\n\n"
            "Este link expira em 30 minutos. Se voce nao pediu a troca, ignore este e-mail."
        )
        self._deliver(to_email, subject, text, kind="reset", link=reset_url)

    async def send_verification_email_async(self, to_email: str, username: str, verify_url: str) -> None:
        await run_in_threadpool(self.send_verification_email, to_email, username, verify_url)

    async def send_reset_password_email_async(self, to_email: str, username: str, reset_url: str) -> None:
        await run_in_threadpool(self.send_reset_password_email, to_email, username, reset_url)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _deliver(self, to_email: str, subject: str, text: str, *, kind: str, link: str) -> None:
        settings = self._settings
        if not settings.smtp_configured:
            if settings.is_production:
                raise MailNotConfiguredError("SMTP_HOST, SMTP_PORT and SMTP_FROM must be set in production.")
            logger.info("[dev] %s link for %s: %s", kind, to_email, link)
            return

        message = EmailMessage()
        message["From"] = settings.smtp_from
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(text)

        if settings.smtp_secure:
            client: smtplib.SMTP = smtplib.SMTP_SSL(
                settings.smtp_host, settings.smtp_port, timeout=_SMTP_TIMEOUT_SECONDS
            )
        else:
            client = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=_SMTP_TIMEOUT_SECONDS)
        with client:
            if not settings.smtp_secure:
                client.ehlo()
                if client.has_extn("starttls"):
                    client.starttls()
                    client.ehlo()
            if settings.smtp_user and settings.smtp_pass:
                client.login(settings.smtp_user, settings.smtp_pass)
            client.send_message(message)
        logger.info("Sent %s email to %s", kind, to_email)
