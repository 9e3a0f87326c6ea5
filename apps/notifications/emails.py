"""
Email notification service.

All functions are synchronous and best-effort: a failed send is logged and
never propagates into the booking flow. Callers queue them with
transaction.on_commit so no email goes out for a rolled-back change.

Public API:
  send_booking_confirmed(booking)
  send_booking_cancelled(booking, credit_granted=False, paid_cancellation=False)
  send_credit_redeemed(booking)
  send_enrollment_confirmed(enrollment)
"""
import logging
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def _booking_context(booking) -> dict:
    """Common template context for all slot booking emails."""
    return {
        'student_name':    booking.student.full_name,
        'class_type':      booking.get_class_type_display(),
        'instructor_name': booking.instructor.name,
        'date':            booking.date,
        'start_time':      booking.start_time,
        'end_time':        booking.end_time,
        'amount':          booking.amount,
        'booking_ref':     str(booking.id)[:8].upper(),
        'site_url':        settings.SITE_URL,
        'support_email':   settings.DEFAULT_FROM_EMAIL,
    }


def _send(subject: str, to_email: str, template: str, context: dict):
    """Build a multipart email from `<template>.txt` and `<template>.html`."""
    if not to_email:
        logger.warning('Email skipped: no address for student (ref %s)', context.get('booking_ref'))
        return

    try:
        text_body = render_to_string(f'{template}.txt', context)
        html_body = render_to_string(f'{template}.html', context)

        msg = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[to_email],
        )
        msg.attach_alternative(html_body, 'text/html')
        msg.send(fail_silently=False)
        logger.info('Email "%s" sent to %s', subject, to_email)
    except Exception as exc:
        logger.exception('Failed to send email "%s" to %s: %s', subject, to_email, exc)


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────

def send_booking_confirmed(booking):
    ctx = _booking_context(booking)
    _send(
        subject=f'Booking Confirmed - {booking.get_class_type_display()} on {booking.date:%b %d, %Y}',
        to_email=booking.student.email,
        template='emails/booking_confirmed',
        context=ctx,
    )


def send_booking_cancelled(booking, credit_granted=False, paid_cancellation=False):
    ctx = _booking_context(booking)
    ctx['credit_granted'] = credit_granted
    ctx['paid_cancellation'] = paid_cancellation
    _send(
        subject=f'Booking Cancelled - {booking.get_class_type_display()} on {booking.date:%b %d, %Y}',
        to_email=booking.student.email,
        template='emails/booking_cancelled',
        context=ctx,
    )


def send_credit_redeemed(booking):
    ctx = _booking_context(booking)
    _send(
        subject=f'Credit Redeemed - {booking.get_class_type_display()} on {booking.date:%b %d, %Y}',
        to_email=booking.student.email,
        template='emails/credit_redeemed',
        context=ctx,
    )


def send_enrollment_confirmed(enrollment):
    ticket_class = enrollment.ticket_class
    ctx = {
        'student_name':  enrollment.student.full_name,
        'class_title':   ticket_class.title,
        'location_name': ticket_class.location.name,
        'date':          ticket_class.date,
        'start_time':    ticket_class.hour,
        'booking_ref':   str(enrollment.id)[:8].upper(),
        'site_url':      settings.SITE_URL,
        'support_email': settings.DEFAULT_FROM_EMAIL,
    }
    _send(
        subject=f'Class Registration Confirmed - {ticket_class.title} on {ticket_class.date:%b %d, %Y}',
        to_email=enrollment.student.email,
        template='emails/enrollment_confirmed',
        context=ctx,
    )
