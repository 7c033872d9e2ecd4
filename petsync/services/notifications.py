import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from email.mime.text import MIMEText

from petsync.core import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppointmentNotice:
    """Snapshot of what an appointment email needs, taken before the session closes."""

    client_email: str
    client_name: str
    pet_name: str
    service_name: str
    start_time: datetime
    business_name: str
    reason: str | None = None


def send_email(to: str, subject: str, body: str) -> bool:
    """Send a plain-text email. Returns False when SMTP is not configured."""
    if not config.SMTP_HOST:
        logger.info('SMTP_HOST not set; skipping email "%s" to %s', subject, to)
        return False

    message = MIMEText(body, 'plain')
    message['Subject'] = subject
    message['From'] = config.EMAIL_FROM_ADDRESS
    message['To'] = to

    use_ssl = config.SMTP_PORT == 465
    if use_ssl:
        connection = smtplib.SMTP_SSL(
            config.SMTP_HOST, config.SMTP_PORT, context=ssl.create_default_context(), timeout=30
        )
    else:
        connection = smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=30)

    # Leaving the block quits the session, or closes the socket when STARTTLS or login fails.
    with connection as server:
        if not use_ssl and config.SMTP_USE_TLS:
            server.starttls(context=ssl.create_default_context())
        if config.SMTP_USERNAME:
            server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD)
        server.sendmail(config.EMAIL_FROM_ADDRESS.split('<')[-1].rstrip('>'), [to], message.as_string())

    logger.info('Email "%s" sent to %s', subject, to)
    return True


def confirmation_body(notice: AppointmentNotice) -> str:
    return (
        f"Hi {notice.client_name},\n\n"
        f"{notice.pet_name} is booked for {notice.service_name} at {notice.business_name} "
        f"on {notice.start_time:%Y-%m-%d} at {notice.start_time:%H:%M}.\n"
    )


def cancellation_body(notice: AppointmentNotice) -> str:
    body = (
        f"Hi {notice.client_name},\n\n"
        f"The {notice.service_name} appointment for {notice.pet_name} at {notice.business_name} "
        f"on {notice.start_time:%Y-%m-%d} at {notice.start_time:%H:%M} has been cancelled.\n"
    )
    if notice.reason:
        body += f"\nReason: {notice.reason}\n"
    return body


def notify_appointment_confirmed(notice: AppointmentNotice) -> None:
    try:
        send_email(notice.client_email, 'Appointment Confirmation - PetSync', confirmation_body(notice))
    except (smtplib.SMTPException, OSError):
        logger.exception('Failed to send confirmation email to %s', notice.client_email)


def notify_appointment_cancelled(notice: AppointmentNotice) -> None:
    try:
        send_email(notice.client_email, 'Appointment Cancelled - PetSync', cancellation_body(notice))
    except (smtplib.SMTPException, OSError):
        logger.exception('Failed to send cancellation email to %s', notice.client_email)
