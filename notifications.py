"""Booking notifications.

Messages are composed here and recorded through the structured logger.
Handing them to a mail transport is left to the deployment.
"""

from typing import Any, Dict

from logging_config import get_logger
from models import Booking, Studio, User

logger = get_logger(__name__)

APP_NAME = "Studio Booking Assistant"


def send_email(to: str, subject: str, template: str, data: Dict[str, Any]) -> Dict[str, Any]:
    message = {"to": to, "subject": subject, "template": template, "data": data}
    logger.info("email_queued", to=to, template=template, subject=subject)
    return message


def booking_confirmation(client: User, studio: Studio, booking: Booking) -> Dict[str, Any]:
    return send_email(
        to=client.email,
        subject=f"Booking Confirmation - {APP_NAME}",
        template="booking-confirmation",
        data={
            "clientName": f"{client.first_name} {client.last_name}",
            "studioName": studio.name,
            "startTime": booking.start_time.isoformat(),
            "endTime": booking.end_time.isoformat(),
            "bookingId": str(booking.id),
        },
    )


def booking_cancellation(client: User, booking: Booking) -> Dict[str, Any]:
    return send_email(
        to=client.email,
        subject=f"Booking Cancellation - {APP_NAME}",
        template="booking-cancellation",
        data={
            "clientName": f"{client.first_name} {client.last_name}",
            "bookingId": str(booking.id),
            "startTime": booking.start_time.isoformat(),
            "reason": booking.cancelled_reason,
        },
    )
