"""
Report delivery (email and webhook).
"""

from .report_sender import (
    CompositeReportSender,
    EmailReportSender,
    Report,
    ReportSender,
    Severity,
    WebhookReportSender,
    should_send_report,
)

__all__ = [
    "CompositeReportSender",
    "EmailReportSender",
    "Report",
    "ReportSender",
    "Severity",
    "WebhookReportSender",
    "should_send_report",
]
