"""Customer and staff notifications for appointment lifecycle events.

Lifecycle code publishes ``AppointmentNotice`` payloads to an outbox. The web
layer backs the outbox with FastAPI background tasks, so delivery happens
after the response is sent and can never undo a committed transition.
"""

import enum
import html
import logging
import smtplib
import ssl
from dataclasses import dataclass, replace
from datetime import date, time
from email.mime.text import MIMEText
from typing import Protocol

import httpx
from fastapi import BackgroundTasks

from salon_backend.core import config

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"

HTML_TEXT_FIELDS = ("customer_name", "customer_email", "customer_phone", "service_name", "employee_name", "note")


class AppointmentEvent(str, enum.Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED_BY_CUSTOMER = "cancelled_by_customer"
    CANCELLED_BY_EMPLOYEE = "cancelled_by_employee"


@dataclass(frozen=True)
class AppointmentNotice:
    event: AppointmentEvent
    appointment_id: int
    customer_name: str
    customer_email: str
    customer_phone: str
    service_name: str
    date: date
    time: time
    employee_name: str | None = None
    employee_email: str | None = None
    note: str | None = None
    was_pending: bool = False
    staff_emails: tuple[str, ...] = ()


@dataclass(frozen=True)
class OutboundMessage:
    channel: str  # email/sms
    to: str
    body: str
    subject: str = ""


class NotificationOutbox(Protocol):
    def publish(self, notice: AppointmentNotice) -> None:
        ...


def format_date(value: date) -> str:
    return f"{value:%A, %B} {value.day}, {value.year}"


def format_time(value: time) -> str:
    hour = value.hour % 12 or 12
    suffix = "PM" if value.hour >= 12 else "AM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_phone(phone: str) -> str:
    if phone.startswith("+"):
        return phone
    digits = "".join(character for character in phone if character.isdigit())
    return f"+1{digits}"


def _cancel_link(notice: AppointmentNotice) -> str:
    return f"{config.CLIENT_URL}/cancel-appointment/{notice.appointment_id}"


def _footer() -> str:
    return (
        f"<p>Questions? Call us at <strong>{config.BUSINESS_PHONE}</strong></p>"
        f"<p>- {config.BUSINESS_NAME}</p>"
    )


def _for_html(notice: AppointmentNotice) -> AppointmentNotice:
    """Copy of ``notice`` with customer and staff supplied text escaped for HTML bodies."""
    return replace(notice, **{
        name: html.escape(getattr(notice, name))
        for name in HTML_TEXT_FIELDS
        if getattr(notice, name) is not None
    })


def build_messages(notice: AppointmentNotice) -> list[OutboundMessage]:
    when = f"{format_date(notice.date)} at {format_time(notice.time)}"
    page = _for_html(notice)
    business = config.BUSINESS_NAME
    messages: list[OutboundMessage] = []

    if notice.event is AppointmentEvent.REQUESTED:
        messages.append(OutboundMessage(
            channel="email",
            to=notice.customer_email,
            subject="Appointment Request Received",
            body=(
                f"<h2>Thank you for your appointment request!</h2><p>Hi {page.customer_name},</p>"
                f"<p>We've received your request for <strong>{page.service_name}</strong> on {when}.</p>"
                "<p>Your appointment is not booked until you receive a confirmation that it has been accepted.</p>"
                f"<p>To cancel this request, visit {_cancel_link(notice)}.</p>{_footer()}"
            ),
        ))
        messages.append(OutboundMessage(
            channel="sms",
            to=notice.customer_phone,
            body=f"{business}: Your request for {notice.service_name} on {when} has been received. "
                 "We'll contact you shortly!",
        ))
        staff_body = (
            f"<h2>New Appointment Request</h2><p><strong>Customer:</strong> {page.customer_name}<br>"
            f"<strong>Email:</strong> {page.customer_email}<br><strong>Phone:</strong> {page.customer_phone}<br>"
            f"<strong>Service:</strong> {page.service_name}<br><strong>When:</strong> {when}<br>"
            f"<strong>Requested Employee:</strong> {page.employee_name or 'No Preference'}</p>"
            f"<p>Review it at {config.CLIENT_URL}/employee-login</p>"
        )
        for email in dict.fromkeys(notice.staff_emails):
            messages.append(OutboundMessage(
                channel="email", to=email, subject="New Appointment Request", body=staff_body,
            ))

    elif notice.event is AppointmentEvent.ACCEPTED:
        note = f"<p><strong>Note from your stylist:</strong> {page.note}</p>" if notice.note else ""
        messages.append(OutboundMessage(
            channel="email",
            to=notice.customer_email,
            subject="Appointment Confirmed!",
            body=(
                f"<h2>Your appointment has been confirmed!</h2><p>Hi {page.customer_name},</p>"
                f"<p><strong>{page.service_name}</strong> on {when} with {page.employee_name}.</p>{note}"
                f"<p>If you need to cancel, visit {_cancel_link(notice)}.</p>{_footer()}"
            ),
        ))
        messages.append(OutboundMessage(
            channel="sms",
            to=notice.customer_phone,
            body=f"{business}: Your appointment on {when} is CONFIRMED with {notice.employee_name}. See you soon!",
        ))
        if notice.employee_email:
            messages.append(OutboundMessage(
                channel="email",
                to=notice.employee_email,
                subject="Appointment Confirmed - You've Been Booked",
                body=(
                    f"<h2>Appointment Confirmed</h2><p>Hi {page.employee_name},</p>"
                    f"<p>{page.service_name} on {when} for {page.customer_name} "
                    f"({page.customer_phone}, {page.customer_email}).</p>"
                ),
            ))

    elif notice.event is AppointmentEvent.DECLINED:
        messages.append(OutboundMessage(
            channel="email",
            to=notice.customer_email,
            subject="Appointment Update",
            body=(
                f"<h2>Appointment Update</h2><p>Hi {page.customer_name},</p>"
                f"<p>Unfortunately, we're unable to accommodate your request for "
                f"<strong>{page.service_name}</strong> on {when}.</p>"
                f"<p><strong>Reason:</strong> {page.note}</p>"
                f"<p>Please request a different time.</p>{_footer()}"
            ),
        ))
        messages.append(OutboundMessage(
            channel="sms",
            to=notice.customer_phone,
            body=f"{business}: We're unable to confirm your {when} appointment. "
                 "Please call us or book another time.",
        ))

    elif notice.event is AppointmentEvent.CANCELLED_BY_CUSTOMER:
        subject = "Appointment Request Cancelled" if notice.was_pending else "Appointment Cancelled"
        messages.append(OutboundMessage(
            channel="email",
            to=notice.customer_email,
            subject=subject,
            body=(
                f"<h2>{subject}</h2><p>Hi {page.customer_name},</p>"
                f"<p>Your appointment for <strong>{page.service_name}</strong> on {when} "
                f"has been cancelled.</p>{_footer()}"
            ),
        ))
        messages.append(OutboundMessage(
            channel="sms",
            to=notice.customer_phone,
            body=f"{business}: Your {when} appointment has been cancelled. Hope to see you again soon!",
        ))
        if not notice.was_pending and notice.employee_email:
            messages.append(OutboundMessage(
                channel="email",
                to=notice.employee_email,
                subject="Appointment Cancelled by Customer",
                body=(
                    f"<h2>Appointment Cancelled</h2><p>Hi {page.employee_name},</p>"
                    f"<p>{page.customer_name} cancelled {page.service_name} on {when}. "
                    "This time slot is available again.</p>"
                ),
            ))

    elif notice.event is AppointmentEvent.CANCELLED_BY_EMPLOYEE:
        reason = f"<p><strong>Reason:</strong> {page.note}</p>" if notice.note else ""
        messages.append(OutboundMessage(
            channel="email",
            to=notice.customer_email,
            subject="Appointment Cancelled",
            body=(
                f"<h2>Appointment Cancelled</h2><p>Hi {page.customer_name},</p>"
                f"<p>Your confirmed appointment for <strong>{page.service_name}</strong> on {when} "
                f"has been cancelled by {page.employee_name}.</p>{reason}{_footer()}"
            ),
        ))
        messages.append(OutboundMessage(
            channel="sms",
            to=notice.customer_phone,
            body=f"{business}: Your {when} appointment has been cancelled. "
                 f"Please call {config.BUSINESS_PHONE} to reschedule.",
        ))

    return messages


class NotificationDispatcher:
    """Delivers notices over SMTP email and Twilio SMS."""

    def __init__(self, http_client: httpx.Client | None = None):
        self.http_client = http_client

    @property
    def email_configured(self) -> bool:
        return bool(config.SMTP_HOST and config.SMTP_USER and config.SMTP_PASSWORD)

    @property
    def sms_configured(self) -> bool:
        return bool(config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN and config.TWILIO_PHONE_NUMBER)

    def send_email(self, to: str, subject: str, html: str) -> bool:
        if not self.email_configured:
            logger.info('Email service not configured; skipping "%s" to %s', subject, to)
            return False

        message = MIMEText(html, "html")
        message["Subject"] = subject
        message["From"] = f"{config.BUSINESS_NAME} <{config.SMTP_FROM_EMAIL}>"
        message["To"] = to

        timeout = config.NOTIFICATIONS_TIMEOUT_SECONDS
        context = ssl.create_default_context()
        if config.SMTP_PORT == 465:
            server = smtplib.SMTP_SSL(config.SMTP_HOST, config.SMTP_PORT, context=context, timeout=timeout)
        else:
            server = smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=timeout)
            server.starttls(context=context)

        with server:
            server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.sendmail(config.SMTP_FROM_EMAIL, [to], message.as_string())

        logger.info('Email "%s" sent to %s', subject, to)
        return True

    def send_sms(self, to: str, body: str) -> bool:
        if not self.sms_configured:
            logger.info("SMS service not configured; skipping message to %s", to)
            return False

        url = TWILIO_MESSAGES_URL.format(account_sid=config.TWILIO_ACCOUNT_SID)
        data = {"To": format_phone(to), "From": config.TWILIO_PHONE_NUMBER, "Body": body}
        auth = (config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)

        if self.http_client is not None:
            response = self.http_client.post(url, data=data, auth=auth)
        else:
            with httpx.Client(timeout=config.NOTIFICATIONS_TIMEOUT_SECONDS) as client:
                response = client.post(url, data=data, auth=auth)
        response.raise_for_status()

        logger.info("SMS sent to %s (sid=%s)", to, response.json().get("sid"))
        return True

    def deliver(self, notice: AppointmentNotice) -> int:
        """Send every message for ``notice``; failures are logged, not raised."""
        delivered = 0
        for message in build_messages(notice):
            try:
                if message.channel == "email":
                    sent = self.send_email(message.to, message.subject, message.body)
                else:
                    sent = self.send_sms(message.to, message.body)
            except Exception:
                logger.exception(
                    "Failed to send %s %s notification for appointment %s",
                    message.channel, notice.event.value, notice.appointment_id,
                )
                continue
            delivered += int(sent)
        return delivered


class BackgroundOutbox:
    """Outbox that defers delivery to FastAPI background tasks."""

    def __init__(self, background_tasks: BackgroundTasks, dispatcher: NotificationDispatcher | None = None):
        self.background_tasks = background_tasks
        self.dispatcher = dispatcher or NotificationDispatcher()

    def publish(self, notice: AppointmentNotice) -> None:
        self.background_tasks.add_task(self.dispatcher.deliver, notice)
