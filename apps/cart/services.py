"""
Cart service.

Adding a slot to the cart holds it as pending (payment online) so nobody
else can take it during checkout; removing it releases the hold again.

Public API:
  add_to_cart(student, slot, amount=None, **lesson_fields)
  add_class_to_cart(student, ticket_class)
  remove_from_cart(student, item)
  clear_cart(student, release=True)
  cart_summary(student)
"""
import logging
from decimal import Decimal

from django.db import transaction

from apps.bookings import engine
from apps.bookings.models import PaymentMethod, SlotStatus
from apps.ticketclasses import services as ticketclass_services
from apps.ticketclasses.models import Enrollment, EnrollmentStatus

from .exceptions import AlreadyInCartError, CartItemNotFoundError
from .models import CartItem

logger = logging.getLogger(__name__)


@transaction.atomic
def add_to_cart(student, slot, amount=None, **lesson_fields) -> CartItem:
    if CartItem.objects.filter(slot=slot).exists():
        raise AlreadyInCartError('This slot is already in a cart.')

    slot = engine.reserve_pending(
        student, slot, payment_method=PaymentMethod.ONLINE, amount=amount, **lesson_fields
    )
    item = CartItem.objects.create(
        student=student,
        slot=slot,
        class_type=slot.class_type,
        amount=slot.amount,
        pickup_location=slot.pickup_location,
        dropoff_location=slot.dropoff_location,
        package_reference=slot.package_reference,
    )
    logger.info('Slot %s added to cart of student %s', slot.id, student.id)
    return item


@transaction.atomic
def add_class_to_cart(student, ticket_class) -> CartItem:
    """
    Hold a seat and put it in the cart. A pending seat the student already
    holds outside any cart or order is reused instead of taking a second one.
    """
    enrollment = (
        Enrollment.objects
        .select_for_update()
        .filter(ticket_class=ticket_class, student=student, status=EnrollmentStatus.PENDING)
        .first()
    )
    if enrollment is None:
        enrollment = ticketclass_services.request_enrollment(student, ticket_class)
    elif enrollment.order_id or CartItem.objects.filter(enrollment=enrollment).exists():
        raise AlreadyInCartError('This class is already in your cart.')

    item = CartItem.objects.create(
        student=student,
        enrollment=enrollment,
        class_type=ticket_class.class_type,
        amount=ticket_class.price,
    )
    logger.info('Seat in class %s added to cart of student %s', ticket_class.id, student.id)
    return item


def _release_item(item, changed_by):
    """Undo the reservation behind a cart item, if it is still only pending."""
    if item.slot_id:
        slot = item.slot
        if slot.status == SlotStatus.PENDING and slot.student_id == item.student_id:
            engine.release_slot(slot, changed_by=changed_by, reason='Removed from cart')
    elif item.enrollment_id:
        enrollment = item.enrollment
        if enrollment.status == EnrollmentStatus.PENDING:
            ticketclass_services.cancel_enrollment(
                item.student, enrollment, enforce_policy=False,
            )


@transaction.atomic
def remove_from_cart(student, item) -> None:
    if item.student_id != student.id:
        raise CartItemNotFoundError('Cart item not found.')
    _release_item(item, changed_by='student')
    # release_slot already drops slot items; enrollment items may remain
    CartItem.objects.filter(pk=item.pk).delete()


@transaction.atomic
def clear_cart(student, release=True) -> int:
    items = list(CartItem.objects.filter(student=student).select_related('slot', 'enrollment'))
    if release:
        for item in items:
            _release_item(item, changed_by='system')
    CartItem.objects.filter(student=student).delete()
    return len(items)


def cart_summary(student) -> dict:
    items = list(
        CartItem.objects
        .filter(student=student)
        .select_related('slot', 'enrollment__ticket_class')
    )
    return {
        'items': [item.as_dict() for item in items],
        'count': len(items),
        'total': str(sum((item.amount for item in items), Decimal('0'))),
    }
