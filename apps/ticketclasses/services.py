"""
Ticket-class enrollment service.

Seats are counted from live enrollments; the class row is locked while a
seat is requested so two students cannot both take the last one.
"""
import logging

from django.db import transaction
from django.utils import timezone

from apps.notifications.emails import send_enrollment_confirmed

from .exceptions import (
    AlreadyEnrolledError,
    CancellationNotAllowedError,
    ClassFullError,
    NotEnrolledError,
    TicketClassNotFoundError,
)
from .models import Enrollment, EnrollmentStatus, TicketClass

logger = logging.getLogger(__name__)


def _lock_class(ticket_class_id) -> TicketClass:
    try:
        return TicketClass.objects.select_for_update().get(pk=ticket_class_id)
    except TicketClass.DoesNotExist:
        raise TicketClassNotFoundError('Ticket class not found.')


def _live_enrollment(ticket_class, student):
    return (
        Enrollment.objects
        .filter(ticket_class=ticket_class, student=student)
        .exclude(status=EnrollmentStatus.CANCELLED)
        .first()
    )


@transaction.atomic
def request_enrollment(student, ticket_class) -> Enrollment:
    """Reserve a seat as PENDING until the order is paid."""
    ticket_class = _lock_class(ticket_class.pk)

    if _live_enrollment(ticket_class, student):
        raise AlreadyEnrolledError('Student is already enrolled in this class.')
    if ticket_class.available_spots <= 0:
        raise ClassFullError('No available spots in this class.')

    enrollment = Enrollment.objects.create(ticket_class=ticket_class, student=student)
    logger.info('Seat requested in class %s by student %s', ticket_class.id, student.id)
    return enrollment


@transaction.atomic
def confirm_enrollment(enrollment, order=None) -> Enrollment:
    enrollment = Enrollment.objects.select_for_update().get(pk=enrollment.pk)
    if enrollment.status == EnrollmentStatus.ENROLLED:
        return enrollment
    if enrollment.status == EnrollmentStatus.CANCELLED:
        raise NotEnrolledError('Enrollment was cancelled.')

    enrollment.status = EnrollmentStatus.ENROLLED
    enrollment.enrolled_at = timezone.now()
    if order is not None:
        enrollment.order = order
    enrollment.save()
    transaction.on_commit(lambda: send_enrollment_confirmed(enrollment))
    logger.info('Enrollment %s confirmed', enrollment.id)
    return enrollment


def check_cancellation_policy(enrollment, now=None) -> dict:
    """
    Classroom seats cancel for free, but not on the day of the class or later.
    """
    now = now or timezone.now()
    today = timezone.localdate(now)
    can_cancel = (
        enrollment.status != EnrollmentStatus.CANCELLED
        and enrollment.ticket_class.date > today
    )
    if enrollment.status == EnrollmentStatus.CANCELLED:
        message = 'Enrollment is already cancelled.'
    elif can_cancel:
        message = 'Free cancellation for ticket classes.'
    else:
        message = 'Cannot cancel classes on the same day or classes that have already passed.'
    return {
        'enrollment_id': str(enrollment.id),
        'can_cancel': can_cancel,
        'requires_payment': False,
        'message': message,
    }


@transaction.atomic
def cancel_enrollment(student, enrollment, now=None, enforce_policy=True) -> Enrollment:
    enrollment = Enrollment.objects.select_for_update().get(pk=enrollment.pk)
    if enrollment.student_id != student.id:
        raise NotEnrolledError('User is not enrolled in this class.')
    if enrollment.status == EnrollmentStatus.CANCELLED:
        return enrollment

    if enforce_policy and not check_cancellation_policy(enrollment, now)['can_cancel']:
        raise CancellationNotAllowedError(
            'Cannot cancel classes on the same day or classes that have already passed.'
        )

    enrollment.status = EnrollmentStatus.CANCELLED
    enrollment.cancelled_at = now or timezone.now()
    enrollment.save()

    from apps.cart.models import CartItem
    CartItem.objects.filter(enrollment=enrollment).delete()
    logger.info('Enrollment %s cancelled', enrollment.id)
    return enrollment
