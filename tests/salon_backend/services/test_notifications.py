from datetime import date, time
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi import BackgroundTasks

from salon_backend.services import notifications
from salon_backend.services.notifications import (
    AppointmentEvent,
    AppointmentNotice,
    BackgroundOutbox,
    NotificationDispatcher,
    build_messages,
    format_date,
    format_phone,
    format_time,
)


def make_notice(event: AppointmentEvent, **overrides) -> AppointmentNotice:
    values = {
        'event': event,
        'appointment_id': 7,
        'customer_name': 'Jamie Rivers',
        'customer_email': 'jamie@example.com',
        'customer_phone': '(804) 555-0100',
        'service_name': 'Haircut',
        'date': date(2031, 1, 6),
        'time': time(14, 30),
    }
    values.update(overrides)
    return AppointmentNotice(**values)


@pytest.fixture
def unconfigured_channels(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ('SMTP_HOST', 'SMTP_USER', 'SMTP_PASSWORD', 'TWILIO_ACCOUNT_SID', 'TWILIO_AUTH_TOKEN'):
        monkeypatch.setattr(notifications.config, name, '')


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        (time(0, 0), '12:00 AM'),
        (time(9, 5), '9:05 AM'),
        (time(12, 0), '12:00 PM'),
        (time(14, 30), '2:30 PM'),
    ],
)
def test_format_time_uses_twelve_hour_clock(value: time, expected: str) -> None:
    assert format_time(value) == expected


def test_format_date_spells_out_weekday() -> None:
    assert format_date(date(2031, 1, 6)) == 'Monday, January 6, 2031'


@pytest.mark.parametrize(
    ('phone', 'expected'),
    [
        ('(804) 555-0100', '+18045550100'),
        ('804.555.0100', '+18045550100'),
        ('+448005550100', '+448005550100'),
    ],
)
def test_format_phone_adds_country_code(phone: str, expected: str) -> None:
    assert format_phone(phone) == expected


def test_build_messages_for_request_notifies_customer_and_staff_once() -> None:
    notice = make_notice(
        AppointmentEvent.REQUESTED,
        staff_emails=('desk@salon.test', 'avery@salon.test', 'desk@salon.test'),
    )

    messages = build_messages(notice)

    assert [(message.channel, message.to) for message in messages] == [
        ('email', 'jamie@example.com'),
        ('sms', '(804) 555-0100'),
        ('email', 'desk@salon.test'),
        ('email', 'avery@salon.test'),
    ]
    assert 'No Preference' in messages[2].body
    assert '/cancel-appointment/7' in messages[0].body


def test_build_messages_for_acceptance_includes_employee() -> None:
    notice = make_notice(
        AppointmentEvent.ACCEPTED,
        employee_name='Avery',
        employee_email='avery@salon.test',
        note='Bring photos',
    )

    messages = build_messages(notice)

    assert [message.to for message in messages] == ['jamie@example.com', '(804) 555-0100', 'avery@salon.test']
    assert 'Bring photos' in messages[0].body
    assert 'CONFIRMED with Avery' in messages[1].body


def test_build_messages_for_decline_includes_reason() -> None:
    messages = build_messages(make_notice(AppointmentEvent.DECLINED, note='Fully booked'))

    assert messages[0].subject == 'Appointment Update'
    assert 'Fully booked' in messages[0].body
    assert len(messages) == 2


@pytest.mark.parametrize(
    ('was_pending', 'subject', 'recipients'),
    [
        (True, 'Appointment Request Cancelled', ['jamie@example.com', '(804) 555-0100']),
        (False, 'Appointment Cancelled', ['jamie@example.com', '(804) 555-0100', 'avery@salon.test']),
    ],
)
def test_build_messages_for_customer_cancellation(was_pending: bool, subject: str, recipients: list[str]) -> None:
    notice = make_notice(
        AppointmentEvent.CANCELLED_BY_CUSTOMER,
        employee_name='Avery',
        employee_email='avery@salon.test',
        was_pending=was_pending,
    )

    messages = build_messages(notice)

    assert messages[0].subject == subject
    assert [message.to for message in messages] == recipients


def test_deliver_skips_unconfigured_channels(unconfigured_channels) -> None:
    delivered = NotificationDispatcher().deliver(make_notice(AppointmentEvent.DECLINED, note='Closed'))

    assert delivered == 0


def test_deliver_logs_and_continues_after_failures(monkeypatch: pytest.MonkeyPatch, caplog) -> None:
    dispatcher = NotificationDispatcher()
    sent = []

    def failing_email(to, subject, html):
        raise OSError('smtp down')

    def recording_sms(to, body):
        sent.append(to)
        return True

    monkeypatch.setattr(dispatcher, 'send_email', failing_email)
    monkeypatch.setattr(dispatcher, 'send_sms', recording_sms)

    delivered = dispatcher.deliver(make_notice(AppointmentEvent.DECLINED, note='Closed'))

    assert delivered == 1
    assert sent == ['(804) 555-0100']
    assert 'Failed to send email declined notification for appointment 7' in caplog.text


def test_send_sms_posts_to_twilio(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(notifications.config, 'TWILIO_ACCOUNT_SID', 'AC123')
    monkeypatch.setattr(notifications.config, 'TWILIO_AUTH_TOKEN', 'secret')
    monkeypatch.setattr(notifications.config, 'TWILIO_PHONE_NUMBER', '+18045550199')
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={'sid': 'SM1'})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    assert NotificationDispatcher(http_client=client).send_sms('(804) 555-0100', 'See you soon')

    [request] = requests
    assert request.url.path == '/2010-04-01/Accounts/AC123/Messages.json'
    form = parse_qs(request.content.decode())
    assert form == {'To': ['+18045550100'], 'From': ['+18045550199'], 'Body': ['See you soon']}


def test_send_sms_raises_on_twilio_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(notifications.config, 'TWILIO_ACCOUNT_SID', 'AC123')
    monkeypatch.setattr(notifications.config, 'TWILIO_AUTH_TOKEN', 'secret')
    monkeypatch.setattr(notifications.config, 'TWILIO_PHONE_NUMBER', '+18045550199')
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(400, json={})))

    with pytest.raises(httpx.HTTPStatusError):
        NotificationDispatcher(http_client=client).send_sms('8045550100', 'Hello')


def test_background_outbox_defers_delivery() -> None:
    background_tasks = BackgroundTasks()
    dispatcher = NotificationDispatcher()

    BackgroundOutbox(background_tasks, dispatcher).publish(make_notice(AppointmentEvent.ACCEPTED))

    [task] = background_tasks.tasks
    assert task.func == dispatcher.deliver


def test_build_messages_escapes_customer_text_in_html_only() -> None:
    notice = make_notice(
        AppointmentEvent.REQUESTED,
        customer_name='<script>alert(1)</script>',
        service_name='Cut & Color',
        staff_emails=('desk@salon.test',),
    )

    messages = build_messages(notice)

    customer_email, sms, staff_email = messages
    assert '&lt;script&gt;alert(1)&lt;/script&gt;' in staff_email.body
    assert '<script>' not in staff_email.body
    assert '<script>' not in customer_email.body
    assert 'Cut &amp; Color' in staff_email.body
    assert 'Cut & Color' in sms.body


def test_build_messages_escapes_decline_reason() -> None:
    messages = build_messages(make_notice(AppointmentEvent.DECLINED, note='<img src=x onerror=alert(1)>'))

    assert '&lt;img src=x onerror=alert(1)&gt;' in messages[0].body
    assert '<img' not in messages[0].body
