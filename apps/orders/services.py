"""
Order service — keeps orders and the slots / seats they pay for in step.

Checkout snapshots the cart into an Order and points every held slot at it.
The payment result then either confirms everything the order covers or
releases it, in one transaction.

Public API:
  next_order_number()
  create_order_from_cart(student, order_type=None, payment_method='online', ...)
  create_cancellation_order(student, slot)
  cancel_order(student, order)
  apply_payment_result(order, status, reference='')
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import Max, Q
from django.utils import timezone

from apps.bookings import engine
from apps.bookings.exceptions import NoCancellationFeeDueError, NotSlotOwnerError
from apps.bookings.models import ClassType, Slot, SlotStatus
from apps.cart.models import CartItem
from apps.ticketclasses import services as ticketclass_services
from apps.ticketclasses.exceptions import NotEnrolledError
from apps.ticketclasses.models import EnrollmentStatus

from .exceptions import EmptyCartError, NotOrderOwnerError, OrderStateError
from .models import (
    AppointmentStatus,
    Order,
    OrderAppointment,
    OrderPaymentStatus,
    OrderStatus,
    OrderType,
)

logger = logging.getLogger(__name__)

FINAL_PAYMENT_STATUSES = (
    OrderPaymentStatus.COMPLETED,
    OrderPaymentStatus.FAILED,
    OrderPaymentStatus.CANCELLED,
)


ORDER_NUMBER_ATTEMPTS = 3


def next_order_number() -> int:
    """Previous highest order number + 1, starting at 1."""
    highest = Order.objects.aggregate(highest=Max('order_number'))['highest']
    return (highest or 0) + 1


def _create_numbered_order(**fields) -> Order:
    """
    Create an order with the next free number. Two checkouts racing for the
    same number collide on the unique constraint; the loser retries.
    """
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                return Order.objects.create(order_number=next_order_number(), **fields)
        except IntegrityError:
            if attempt == ORDER_NUMBER_ATTEMPTS:
                raise
            logger.warning('Order number taken, retrying (attempt %d)', attempt)


def _infer_order_type(items):
    if all(item.enrollment_id for item in items):
        return OrderType.TICKET_CLASS
    if any(item.class_type == ClassType.DRIVING_LESSON for item in items):
        return OrderType.DRIVING_LESSON_PACKAGE
    return OrderType.DRIVING_TEST


def _covered_items(order):
    return {
        (a.slot_id, a.enrollment_id)
        for a in order.appointments.exclude(status=AppointmentStatus.CANCELLED)
    }


def _previous_checkouts(student, items):
    """Pending orders of this student that already link one of the cart's holds."""
    slot_ids = [item.slot_id for item in items if item.slot_id]
    enrollment_ids = [item.enrollment_id for item in items if item.enrollment_id]
    order_ids = set(
        OrderAppointment.objects
        .filter(order__student=student, order__status=OrderStatus.PENDING)
        .filter(Q(slot_id__in=slot_ids) | Q(enrollment_id__in=enrollment_ids))
        .values_list('order_id', flat=True)
    )
    return list(Order.objects.select_for_update().filter(pk__in=order_ids).order_by('created_at'))


def _supersede(order):
    """Retire a pending order whose holds are moving to a newer checkout."""
    order.appointments.update(status=AppointmentStatus.CANCELLED, updated_at=timezone.now())
    order.status = OrderStatus.CANCELLED
    order.payment_status = OrderPaymentStatus.CANCELLED
    order.cancelled_at = timezone.now()
    order.save()
    logger.info('Order #%s superseded by a new checkout', order.order_number)


@transaction.atomic
def create_order_from_cart(student, order_type=None, payment_method='online',
                           package_name='', package_hours=None) -> Order:
    """
    Snapshot the student's cart into a pending order and link every held
    slot and seat to it.

    Checking out the same cart again returns the pending order already
    made for it. If the cart changed since, that older order is cancelled
    and its holds move to the new one.

    Raises:
      EmptyCartError     — nothing in the cart
      OrderStateError    — a held slot was released in the meantime
    """
    items = list(
        CartItem.objects
        .filter(student=student)
        .select_related('slot', 'enrollment__ticket_class')
    )
    if not items:
        raise EmptyCartError('Your cart is empty.')

    in_cart = {(item.slot_id, item.enrollment_id) for item in items}
    for previous in _previous_checkouts(student, items):
        if _covered_items(previous) == in_cart:
            logger.info('Checkout repeated, reusing order #%s', previous.order_number)
            return previous
        _supersede(previous)

    order = _create_numbered_order(
        student=student,
        order_type=order_type or _infer_order_type(items),
        items=[item.as_dict() for item in items],
        total=sum(item.amount for item in items),
        payment_method=payment_method,
        package_name=package_name,
        package_hours=package_hours,
    )

    for item in items:
        if item.slot_id:
            slot = Slot.objects.select_for_update().get(pk=item.slot_id)
            if slot.status != SlotStatus.PENDING or slot.student_id != student.id:
                raise OrderStateError(
                    f'The {slot.get_class_type_display().lower()} on {slot.date} at '
                    f'{slot.start_time:%H:%M} is no longer reserved for you.'
                )
            slot.order = order
            slot.save(update_fields=['order', 'updated_at'])
            OrderAppointment.objects.create(
                order=order,
                slot=slot,
                class_type=slot.class_type,
                date=slot.date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                amount=item.amount,
            )
        else:
            enrollment = item.enrollment
            enrollment.order = order
            enrollment.save(update_fields=['order', 'updated_at'])
            ticket_class = enrollment.ticket_class
            OrderAppointment.objects.create(
                order=order,
                enrollment=enrollment,
                class_type=ticket_class.class_type,
                date=ticket_class.date,
                start_time=ticket_class.hour,
                amount=item.amount,
            )

    logger.info('Order #%s created for student %s (%d items)', order.order_number, student.id, len(items))
    return order


@transaction.atomic
def create_cancellation_order(student, slot) -> Order:
    """
    Fee order for cancelling a booking inside the cancellation window.
    An unpaid fee order for the same slot is reused.

    Raises:
      NotSlotOwnerError          — slot belongs to someone else
      NoCancellationFeeDueError  — cancelling is free right now
    """
    slot = Slot.objects.select_for_update().get(pk=slot.pk)
    if slot.student_id != student.id:
        raise NotSlotOwnerError('This booking does not belong to you.')

    quote = engine.evaluate_cancellation(slot)
    if not quote.requires_payment:
        raise NoCancellationFeeDueError('No cancellation fee is due for this booking.')

    existing = (
        Order.objects
        .filter(
            student=student,
            status=OrderStatus.PENDING,
            appointments__slot=slot,
            order_type__in=[OrderType.CANCEL_DRIVING_TEST, OrderType.CANCEL_DRIVING_LESSON],
        )
        .first()
    )
    if existing:
        return existing

    order_type = (
        OrderType.CANCEL_DRIVING_TEST if slot.class_type == ClassType.DRIVING_TEST
        else OrderType.CANCEL_DRIVING_LESSON
    )
    order = _create_numbered_order(
        student=student,
        order_type=order_type,
        items=[{
            'slot_id': str(slot.id),
            'title': f'Cancellation fee - {slot.get_class_type_display()}',
            'price': str(quote.fee),
            'quantity': 1,
        }],
        total=quote.fee,
    )
    OrderAppointment.objects.create(
        order=order,
        slot=slot,
        class_type=slot.class_type,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        amount=quote.fee,
    )
    logger.info('Cancellation order #%s created for slot %s', order.order_number, slot.id)
    return order


def _release_appointments(order, changed_by):
    """Release whatever of the order is still only pending. Returns (released, skipped)."""
    released = skipped = 0
    for appointment in order.appointments.select_related('slot', 'enrollment'):
        if appointment.slot_id and not order.is_cancellation:
            slot = appointment.slot
            if slot.status == SlotStatus.PENDING and slot.order_id == order.id:
                engine.release_slot(slot, changed_by=changed_by, reason=f'Order #{order.order_number} cancelled')
                released += 1
            else:
                skipped += 1
        elif appointment.enrollment_id:
            enrollment = appointment.enrollment
            if enrollment.status == EnrollmentStatus.PENDING:
                ticketclass_services.cancel_enrollment(enrollment.student, enrollment, enforce_policy=False)
                released += 1
            else:
                skipped += 1
        appointment.status = AppointmentStatus.CANCELLED
        appointment.save(update_fields=['status', 'updated_at'])
    return released, skipped


def _drop_cart_items(order):
    appointments = order.appointments.all()
    slot_ids = [a.slot_id for a in appointments if a.slot_id]
    enrollment_ids = [a.enrollment_id for a in appointments if a.enrollment_id]
    CartItem.objects.filter(
        Q(slot_id__in=slot_ids) | Q(enrollment_id__in=enrollment_ids),
        student=order.student,
    ).delete()


@transaction.atomic
def cancel_order(student, order) -> dict:
    """
    Student abandons checkout. Only pending orders can be cancelled; slots
    that are already booked are left alone and counted as skipped.
    """
    order = Order.objects.select_for_update().get(pk=order.pk)
    if order.student_id != student.id:
        raise NotOrderOwnerError('This order does not belong to you.')
    if order.status != OrderStatus.PENDING:
        raise OrderStateError(f'Only pending orders can be cancelled (status: {order.status}).')

    _drop_cart_items(order)
    released, skipped = _release_appointments(order, changed_by='student')
    order.status = OrderStatus.CANCELLED
    order.payment_status = OrderPaymentStatus.CANCELLED
    order.cancelled_at = timezone.now()
    order.save()

    logger.info('Order #%s cancelled: %d released, %d skipped', order.order_number, released, skipped)
    return {'order_id': str(order.id), 'released': released, 'skipped': skipped}


@transaction.atomic
def apply_payment_result(order, status, reference='') -> Order:
    """
    Record the outcome of the payment for `order`.

      completed           confirm every pending slot / seat (or finish the
                          paid cancellation), clear them from the cart
      failed / cancelled  release every pending slot / seat

    Re-applying a result the order already has is a no-op.
    """
    order = Order.objects.select_for_update().get(pk=order.pk)
    status = str(status)
    if status not in FINAL_PAYMENT_STATUSES:
        raise OrderStateError(f'Unknown payment status: {status}')

    if order.payment_status == status:
        logger.info('Order #%s already has payment status %s, skipping', order.order_number, status)
        return order
    if order.payment_status in FINAL_PAYMENT_STATUSES:
        logger.warning(
            'Ignoring payment status %s for order #%s: already %s',
            status, order.order_number, order.payment_status,
        )
        return order

    if status == OrderPaymentStatus.COMPLETED:
        _confirm_order(order, reference)
        order.status = OrderStatus.CONFIRMED
    else:
        _drop_cart_items(order)
        _release_appointments(order, changed_by='payment')
        order.status = OrderStatus.CANCELLED
        order.cancelled_at = timezone.now()

    order.payment_status = status
    order.payment_reference = reference or order.payment_reference
    order.save()
    logger.info('Order #%s payment %s (ref %s)', order.order_number, status, reference or '-')
    return order


def _confirm_order(order, reference):
    _drop_cart_items(order)
    for appointment in order.appointments.select_related('slot', 'enrollment'):
        if appointment.slot_id and order.is_cancellation:
            engine.process_paid_cancellation(appointment.slot, order)
            appointment.status = AppointmentStatus.CONFIRMED

        elif appointment.slot_id:
            slot = appointment.slot
            if slot.status == SlotStatus.PENDING and slot.order_id == order.id:
                engine.confirm_slot(slot, payment_reference=reference, changed_by='payment')
                appointment.status = AppointmentStatus.CONFIRMED
            elif slot.is_active_booking and slot.student_id == order.student_id:
                appointment.status = AppointmentStatus.CONFIRMED
            else:
                # hold expired before the payment arrived
                logger.warning(
                    'Order #%s paid but slot %s is %s; appointment not confirmed',
                    order.order_number, slot.id, slot.status,
                )
                appointment.status = AppointmentStatus.CANCELLED

        elif appointment.enrollment_id:
            try:
                ticketclass_services.confirm_enrollment(appointment.enrollment, order=order)
                appointment.status = AppointmentStatus.CONFIRMED
            except NotEnrolledError:
                appointment.status = AppointmentStatus.CANCELLED

        appointment.save(update_fields=['status', 'updated_at'])
