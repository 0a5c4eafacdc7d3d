"""Templated staff e-mail shared by order notifications and monthly reports."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import structlog
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = structlog.get_logger(__name__)


def staff_recipients() -> List[str]:
    """E-mail addresses of active staff users."""
    return list(
        get_user_model()
        .objects.filter(is_active=True, is_staff=True)
        .exclude(email="")
        .order_by("email")
        .values_list("email", flat=True)
    )


def send_to_staff(
    subject: str, template: str, context: Dict[str, Any]
) -> Tuple[int, int]:
    """Render ``<template>.txt`` / ``<template>.html`` and mail each staff user.

    One message per recipient so a bad address only loses that copy.
    Returns ``(sent, failed)``.
    """
    context = {"store_name": settings.STORE_NAME, **context}
    text_body = render_to_string(f"{template}.txt", context)
    html_body = render_to_string(f"{template}.html", context)

    sent = failed = 0
    for address in staff_recipients():
        message = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[address],
        )
        message.attach_alternative(html_body, "text/html")
        try:
            message.send()
        except Exception:
            failed += 1
            logger.exception("mail.send_failed", template=template, recipient=address)
        else:
            sent += 1
    logger.info("mail.sent", template=template, sent=sent, failed=failed)
    return sent, failed
