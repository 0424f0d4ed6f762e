from __future__ import annotations

import html
import logging
from dataclasses import dataclass

from slotbook.application.ports.notifier import NotifierPort
from slotbook.domain.entities.account import Account
from slotbook.domain.entities.booking import Booking
from slotbook.domain.entities.time_slot import TimeSlot


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    to: str
    subject: str
    text_body: str
    html_body: str


def format_date(booking_or_slot: Booking | TimeSlot) -> str:
    d = booking_or_slot.date
    return f"{d.strftime('%A, %B')} {d.day}, {d.year}"


def format_hour(hour: int) -> str:
    hour12 = hour % 12 or 12
    return f"{hour12}:00 {'PM' if hour >= 12 else 'AM'}"


def _build(to: str, subject: str, lines: list[str]) -> Notification:
    text_body = "\n".join(lines).strip()
    paragraphs = [f"<p>{html.escape(line)}</p>" for line in lines if line]
    return Notification(to=to, subject=subject, text_body=text_body, html_body="\n".join(paragraphs))


def _summary(booking: Booking) -> list[str]:
    return [
        f"Client: {booking.client_name or 'Not provided'}",
        f"Email: {booking.client_email or 'Not provided'}",
        f"Phone: {booking.client_phone or 'Not provided'}",
        f"Resource: {booking.resource_id}",
        f"Date: {format_date(booking)}",
        f"Time: {format_hour(booking.hour)}",
        f"Amount: ${booking.amount}",
    ]


def _alternative_lines(alternatives: list[TimeSlot]) -> list[str]:
    if not alternatives:
        return ["There are no other open times right now. Reply to this email and we will find one."]
    return [f"- {format_date(slot)} at {format_hour(slot.hour)}" for slot in alternatives]


def admin_booking_request(booking: Booking, admin_email: str, confirm_url: str, decline_url: str) -> Notification:
    subject = f"New Booking Request: {booking.client_name or 'Client'} - {format_date(booking)} at {format_hour(booking.hour)}"
    lines = [
        "You have a new booking request.",
        *_summary(booking),
        "",
        f"To ACCEPT this booking: {confirm_url}",
        f"To DECLINE this booking: {decline_url}",
        "",
        f"Request ID: {booking.id}",
    ]
    return _build(admin_email, subject, lines)


def client_confirmation(booking: Booking, business_name: str) -> Notification:
    subject = f"Booking Confirmed - {format_date(booking)} at {format_hour(booking.hour)}"
    lines = [
        f"Hi {booking.client_name or 'there'},",
        f"Your booking with {business_name} is confirmed.",
        f"Date: {format_date(booking)}",
        f"Time: {format_hour(booking.hour)}",
        f"Amount: ${booking.amount}",
    ]
    return _build(booking.client_email, subject, lines)


def admin_confirmation(booking: Booking, admin_email: str) -> Notification:
    subject = f"Confirmed: {booking.client_name or 'Client'} - {format_date(booking)} at {format_hour(booking.hour)}"
    return _build(admin_email, subject, ["You confirmed this booking.", *_summary(booking)])


def client_declined(booking: Booking, alternatives: list[TimeSlot], business_name: str) -> Notification:
    subject = f"Your requested time is unavailable - {format_date(booking)}"
    lines = [
        f"Hi {booking.client_name or 'there'},",
        f"Unfortunately {business_name} cannot take your booking on "
        f"{format_date(booking)} at {format_hour(booking.hour)}.",
        "Here are some other open times:",
        *_alternative_lines(alternatives),
    ]
    return _build(booking.client_email, subject, lines)


def admin_declined(booking: Booking, alternatives: list[TimeSlot], admin_email: str) -> Notification:
    subject = f"Declined: {booking.client_name or 'Client'} - {format_date(booking)} at {format_hour(booking.hour)}"
    lines = [
        f"You declined this booking. The client was offered {len(alternatives)} alternative time(s).",
        *_summary(booking),
        *_alternative_lines(alternatives),
    ]
    return _build(admin_email, subject, lines)


def payment_receipt(booking: Booking, account: Account, business_name: str) -> Notification:
    to = account.email or booking.client_email
    subject = f"Payment Receipt - ${booking.amount} - {business_name}"
    lines = [
        f"Hi {account.name or booking.client_name or 'there'},",
        f"Your card on file has been charged ${booking.amount} for your booking on {format_date(booking)}.",
        "Thank you!",
    ]
    return _build(to, subject, lines)


def operator_charge_failure(booking: Booking, account: Account | None, error: str, operator_email: str) -> Notification:
    who = account.label if account else (booking.client_name or booking.account_id or "unknown account")
    subject = f"Auto-charge failed: {who} - booking {booking.id}"
    lines = [
        f"Auto-charge for {who} (${booking.amount}) failed: {error}",
        f"Booking ID: {booking.id}",
        f"Date: {format_date(booking)} at {format_hour(booking.hour)}",
    ]
    return _build(operator_email, subject, lines)


def deliver(notifier: NotifierPort, notification: Notification) -> bool:
    """Send through the notifier. Delivery problems are logged, never raised."""
    if not notification.to:
        return False
    try:
        result = notifier.send(
            to=notification.to,
            subject=notification.subject,
            html_body=notification.html_body,
            text_body=notification.text_body,
        )
    except Exception as e:
        logger.exception("Notifier raised", extra={"error": str(e)})
        return False
    if not result.success:
        logger.warning("Notification not delivered", extra={"error": result.error, "reason": notification.subject})
    return result.success
