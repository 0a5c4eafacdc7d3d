"""Celery tasks of the reports module."""

from celery import shared_task


@shared_task(name="reports.send_monthly_report")
def send_monthly_report() -> dict:
    """Beat entry point: 08:00 on the 1st, store time zone."""
    from modules.reports.mail import send_monthly_report as send

    return send()
