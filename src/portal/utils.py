"""
utils.py

Utility functions for the ORII research portal backend: SendGrid transport,
Redis login rate limiting, pagination and the JSON response envelope.
"""
import logging
import math
import random
import string
from datetime import datetime
from typing import Any, Optional

import redis.asyncio as redis
from fastapi import Query, Request
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, From

from portal.settings import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the mail transport refuses or fails to deliver a message."""


def send_email(
    to: str,
    subject: str,
    body: str,
    is_html: bool = False,
    text_body: Optional[str] = None,
) -> Optional[str]:
    """
    Send email using the SendGrid API.

    Args:
        to: Recipient email address
        subject: Email subject
        body: Email body (plain text or HTML)
        is_html: True if body is HTML, False for plain text
        text_body: Optional plain-text alternative for HTML mail

    Returns:
        The SendGrid message id, when the API reports one.

    Raises:
        EmailDeliveryError: configuration is missing or SendGrid rejected the message.
    """
    if not settings.email_api_key:
        raise EmailDeliveryError("SendGrid API key missing in configuration")
    if not settings.email_sender:
        raise EmailDeliveryError("Email sender address missing in configuration")

    message = Mail(
        from_email=From(settings.email_sender, settings.email_sender_name),
        to_emails=to,
        subject=subject,
    )
    if is_html:
        if text_body:
            message.add_content(text_body, "text/plain")
        message.add_content(body, "text/html")
    else:
        message.add_content(body, "text/plain")

    sg = SendGridAPIClient(api_key=settings.email_api_key)
    if settings.sendgrid_eu_residency:
        sg.set_sendgrid_data_residency("eu")

    try:
        response = sg.send(message)
    except Exception as e:
        raise EmailDeliveryError(f"SendGrid exception: {e}") from e

    if not 200 <= response.status_code < 300:
        body_text = response.body.decode("utf-8") if isinstance(response.body, bytes) else response.body
        raise EmailDeliveryError(f"SendGrid error {response.status_code}: {body_text}")

    headers = getattr(response, "headers", None) or {}
    return headers.get("X-Message-Id")


# Async Redis-based rate limiter utility
async def check_and_increment_rate_limit(ip: str, limit: int, period: int, redis_url: Optional[str]) -> bool:
    """
    Returns True if the request is allowed, False if rate limited.
    Increments the count for the given IP in Redis, with expiry.
    Without a Redis URL every request is allowed.
    """
    if not redis_url:
        return True
    r = redis.from_url(redis_url, decode_responses=True)
    try:
        key = f"login_attempts:{ip}"
        count = await r.incr(key)
        if count == 1:
            await r.expire(key, period)
        return count <= limit
    finally:
        await r.aclose()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class Pagination:
    """Query dependency: page >= 1, 1 <= limit <= 100."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict:
        return {
            "currentPage": self.page,
            "totalPages": math.ceil(total / self.limit) if total else 0,
            "totalItems": total,
            "itemsPerPage": self.limit,
            "hasNext": self.page * self.limit < total,
            "hasPrev": self.page > 1,
        }


def success(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    """Wrap a successful result in the API envelope."""
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def generate_submission_id(now: Optional[datetime] = None) -> str:
    """Submission id in the form ORII-YYYYMMDD-XXXXXX."""
    now = now or datetime.utcnow()
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"ORII-{now:%Y%m%d}-{suffix}"
