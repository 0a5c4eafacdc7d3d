"""Monthly report e-mail to staff."""

from __future__ import annotations

from datetime import date
from typing import Optional

import structlog

from modules.core.mail import send_to_staff
from modules.reports.periods import last_full_month
from modules.reports.services import ReportService

logger = structlog.get_logger(__name__)


def send_monthly_report(
    today: Optional[date] = None, service: Optional[ReportService] = None
) -> dict:
    """Build last month's report and mail it to every active staff user.

    Per-recipient failures are counted in the result, never raised.
    """
    period = last_full_month(today)
    report = (service or ReportService()).build_report(period)

    sent, failed = send_to_staff(
        subject=f"Báo cáo doanh thu tháng {period.label}",
        template="reports/monthly_report",
        context={"report": report, "period": period},
    )
    logger.info("report.monthly_sent", period=period.label, sent=sent, failed=failed)
    return {"period": period.label, "sent": sent, "failed": failed}
