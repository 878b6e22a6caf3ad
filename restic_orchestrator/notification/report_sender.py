#!/usr/bin/env python3
"""
Report delivery for backup and maintenance attempts.
Reports go out by SMTP email (log attached) and/or a JSON webhook.
"""

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from pathlib import Path
from typing import Optional, List, Protocol

import requests

from restic_orchestrator.config.loader import Settings, SmtpSettings

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Report:
    """Report data structure"""
    subject: str
    body: str
    attachment: Optional[Path] = None
    severity: Severity = Severity.INFO


class ReportSender(Protocol):
    def send_report(
        self,
        subject: str,
        body: str,
        attachment: Optional[Path],
        severity: Severity
    ) -> bool:
        ...


def should_send_report(has_errors: bool, send_on_success: bool, previous_failed: bool) -> bool:
    """
    Error reports are never suppressed. Success reports are sent when
    enabled, or when the previous run of the phase failed so recovery is visible.
    """
    return has_errors or send_on_success or previous_failed


class EmailReportSender:
    """Sends reports through an SMTP server"""

    def __init__(self, smtp: SmtpSettings, timeout: int = 30):
        self.smtp = smtp
        self.timeout = timeout

    def send_report(
        self,
        subject: str,
        body: str,
        attachment: Optional[Path] = None,
        severity: Severity = Severity.INFO
    ) -> bool:
        msg = MIMEMultipart()
        msg["From"] = self.smtp.sender
        msg["To"] = ", ".join(self.smtp.recipients)
        msg["Subject"] = subject
        if severity == Severity.ERROR:
            msg["X-Priority"] = "1"
        msg.attach(MIMEText(body, "plain", "utf-8"))

        if attachment is not None and attachment.exists():
            part = MIMEBase("application", "octet-stream")
            part.set_payload(attachment.read_bytes())
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", f'attachment; filename="{attachment.name}"')
            msg.attach(part)

        try:
            if self.smtp.use_ssl:
                server = smtplib.SMTP_SSL(
                    self.smtp.host, self.smtp.port,
                    context=ssl.create_default_context(), timeout=self.timeout
                )
            else:
                server = smtplib.SMTP(self.smtp.host, self.smtp.port, timeout=self.timeout)

            with server:
                if self.smtp.starttls and not self.smtp.use_ssl:
                    server.starttls(context=ssl.create_default_context())
                if self.smtp.username:
                    server.login(self.smtp.username, self.smtp.password)
                server.sendmail(self.smtp.sender, list(self.smtp.recipients), msg.as_string())

            logger.info(f"Report emailed to {len(self.smtp.recipients)} recipient(s): {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to email report '{subject}': {e}")
            return False


class WebhookReportSender:
    """
    Posts reports as JSON to a webhook (chat or notify services).
    The attachment content is inlined, truncated to ``max_attachment_chars``.
    """

    def __init__(self, url: str, token: Optional[str] = None, max_attachment_chars: int = 4000):
        self.url = url
        self.token = token
        self.max_attachment_chars = max_attachment_chars

    def send_report(
        self,
        subject: str,
        body: str,
        attachment: Optional[Path] = None,
        severity: Severity = Severity.INFO
    ) -> bool:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        data = {
            "title": subject,
            "message": body,
            "data": {"importance": severity.value},
        }
        if attachment is not None and attachment.exists():
            text = attachment.read_text(encoding="utf-8", errors="replace")
            data["attachment"] = {
                "name": attachment.name,
                "content": text[-self.max_attachment_chars:],
            }

        try:
            response = requests.post(self.url, json=data, headers=headers, timeout=10)

            if response.ok:
                logger.info(f"Report posted to webhook: {subject}")
                return True

            logger.error(
                f"Failed to post report to webhook: {response.status_code} - {response.text}"
            )
            return False

        except requests.exceptions.RequestException as e:
            logger.error(f"Network error posting report: {e}")
            return False


class CompositeReportSender:
    """Logs every report and forwards it to all configured transports"""

    def __init__(self, senders: Optional[List[ReportSender]] = None):
        self.senders = list(senders or [])

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompositeReportSender":
        senders: List[ReportSender] = []
        if settings.smtp is not None:
            senders.append(EmailReportSender(settings.smtp))
        if settings.webhook_url:
            senders.append(WebhookReportSender(
                settings.webhook_url, settings.environment.get("WEBHOOK_TOKEN")
            ))
        return cls(senders)

    def send_report(
        self,
        subject: str,
        body: str,
        attachment: Optional[Path] = None,
        severity: Severity = Severity.INFO
    ) -> bool:
        self._log_report(Report(subject, body, attachment, severity))

        if not self.senders:
            logger.debug("No report transport configured, report logged only")
            return False

        results = [s.send_report(subject, body, attachment, severity) for s in self.senders]
        return all(results)

    @staticmethod
    def _log_report(report: Report) -> None:
        level = logging.ERROR if report.severity == Severity.ERROR else logging.INFO
        logger.log(level, f"Report [{report.severity.value.upper()}]: {report.subject}")
        if report.attachment is not None:
            logger.debug(f"  attachment: {report.attachment}")
