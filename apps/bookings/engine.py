"""
Booking engine — slot lifecycle, pure business logic, no HTTP awareness.

    available ──hold──▶ pending ──confirm──▶ booked ⇄ scheduled ──cancel──▶ cancelled
        ▲                  │                                                   │
        └────release───────┘                     (fresh available slot) ◀──────┘

Every public function runs in one transaction and re-reads the slot with
SELECT FOR UPDATE, so concurrent requests for the same slot serialise.

Public API:
  find_slot(instructor_id, class_type, date, start_time, end_time, slot_id=None)
  reserve_pending(student, slot, payment_method, amount=None, ...)
  confirm_slot(slot, payment_reference='', changed_by='system', status=BOOKED)
  release_slot(slot, changed_by='system', reason='', student=None)
  set_slot_status(slot, status, changed_by='admin', payment_reference='')
  evaluate_cancellation(slot, now=None)
  cancel_booking(student, slot, now=None)
  process_paid_cancellation(slot, order)
  create_available_slots(instructor, class_type, date, intervals, amount=None)
  delete_available_slot(slot)
  available_credits(student, class_type=None, duration_minutes=None)
  redeem_credit(student, slot)
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.notifications.broadcast import schedule_changed
from apps.notifications.emails import (
    send_booking_cancelled,
    send_booking_confirmed,
    send_credit_redeemed,
)

from .exceptions import (
    InvalidTransitionError,
    NoCreditAvailableError,
    NotSlotOwnerError,
    SlotNotFoundError,
    SlotUnavailableError,
)
from .models import (
    ACTIVE_STATUSES,
    ClassType,
    PaymentMethod,
    Slot,
    SlotStatus,
    StudentBooking,
    StudentBookingStatus,
)

logger = logging.getLogger(__name__)


# ── Results ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CancellationQuote:
    """What cancelling a slot right now would cost the student."""
    slot_status: str
    hours_until_start: float
    within_window: bool
    can_cancel: bool
    requires_payment: bool
    fee: Decimal
    credit_eligible: bool

    def as_dict(self):
        return {
            'slot_status': self.slot_status,
            'hours_until_start': round(self.hours_until_start, 1),
            'within_window': self.within_window,
            'can_cancel': self.can_cancel,
            'requires_payment': self.requires_payment,
            'cancellation_fee': str(self.fee),
            'credit_eligible': self.credit_eligible,
        }


@dataclass(frozen=True)
class CancellationResult:
    quote: CancellationQuote
    cancelled: bool
    was_pending: bool = False
    credit_granted: bool = False
    credit_restored: bool = False
    replacement: Optional[Slot] = None
    booking: Optional[StudentBooking] = None

    def as_dict(self):
        data = self.quote.as_dict()
        data.update({
            'cancelled': self.cancelled,
            'was_pending': self.was_pending,
            'credit_granted': self.credit_granted,
            'credit_restored': self.credit_restored,
            'new_slot_id': str(self.replacement.id) if self.replacement else None,
        })
        return data


# ── Helpers ───────────────────────────────────────────────────────────────────

def _lock_slot(slot_id) -> Slot:
    try:
        return Slot.objects.select_for_update().get(pk=slot_id)
    except Slot.DoesNotExist:
        raise SlotNotFoundError('Slot not found.')


def _ensure_owner(slot: Slot, student) -> None:
    if slot.student_id != student.id:
        raise NotSlotOwnerError('This booking does not belong to you.')


def _default_amount(slot: Slot) -> Decimal:
    if slot.amount:
        return slot.amount
    if slot.class_type == ClassType.DRIVING_TEST:
        return Decimal(settings.DEFAULT_DRIVING_TEST_PRICE)
    return Decimal('0')


def _drop_cart_entry(slot: Slot) -> None:
    from apps.cart.models import CartItem
    CartItem.objects.filter(slot=slot).delete()


def find_slot(instructor_id, class_type, date, start_time, end_time=None, slot_id=None) -> Slot:
    """
    Resolve a slot by id, or by instructor + class type + date + start.
    Live slots win over cancelled history rows at the same time.
    """
    try:
        qs = Slot.objects.filter(instructor_id=instructor_id)
        if slot_id:
            slot = qs.filter(pk=slot_id).first()
        else:
            qs = qs.filter(class_type=class_type, date=date, start_time=start_time)
            if end_time is not None:
                qs = qs.filter(end_time=end_time)
            slot = qs.exclude(status=SlotStatus.CANCELLED).first() or qs.first()
    except ValidationError:
        # malformed UUID
        slot = None
    if slot is None:
        raise SlotNotFoundError(
            'Slot not found.' if slot_id else f'Slot not found for {date} {start_time}.'
        )
    return slot


# ── Core: Hold & Confirm ──────────────────────────────────────────────────────

@transaction.atomic
def reserve_pending(student, slot: Slot, payment_method=PaymentMethod.ONLINE, amount=None,
                    changed_by='student', **lesson_fields) -> Slot:
    """
    Hold an AVAILABLE slot for `student` while payment is outstanding.

    Raises:
      SlotNotFoundError      — slot vanished
      SlotUnavailableError   — slot is not available or already owned
    """
    slot = _lock_slot(slot.pk)
    if not slot.is_free:
        raise SlotUnavailableError('This slot is no longer available. Please choose a different time.')

    amount = Decimal(amount) if amount not in (None, '') else _default_amount(slot)
    slot.hold(student, payment_method, amount, changed_by=changed_by, **lesson_fields)
    logger.info('Slot %s held as pending for student %s (%s)', slot.id, student.id, payment_method)
    schedule_changed(slot)
    return slot


@transaction.atomic
def confirm_slot(slot: Slot, payment_reference='', changed_by='system',
                 status=SlotStatus.BOOKED) -> StudentBooking:
    """
    PENDING → BOOKED (or SCHEDULED) and record the student-side booking.
    Confirming a slot that is already active returns its booking unchanged.
    """
    slot = _lock_slot(slot.pk)

    if slot.status in ACTIVE_STATUSES:
        existing = StudentBooking.objects.active().filter(slot=slot).first()
        if existing:
            logger.info('Slot %s already confirmed, skipping', slot.id)
            return existing

    if slot.status != SlotStatus.PENDING or slot.student_id is None:
        raise InvalidTransitionError(f'Only pending slots can be confirmed (status: {slot.status}).')

    slot.confirm(payment_reference=payment_reference, changed_by=changed_by, status=status)
    booking = StudentBooking.objects.create(
        student=slot.student,
        slot=slot,
        instructor=slot.instructor,
        class_type=slot.class_type,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        duration_minutes=slot.duration_minutes,
        amount=slot.amount,
        order=slot.order,
        booked_at=slot.confirmed_at,
    )
    logger.info('Slot %s confirmed for student %s', slot.id, slot.student_id)
    schedule_changed(slot)
    transaction.on_commit(lambda: send_booking_confirmed(booking))
    return booking


@transaction.atomic
def release_slot(slot: Slot, changed_by='system', reason='', student=None) -> Slot:
    """
    PENDING → AVAILABLE. When `student` is given the hold must be theirs.

    Raises InvalidTransitionError if the slot is not pending.
    """
    slot = _lock_slot(slot.pk)
    if student is not None:
        _ensure_owner(slot, student)
    if slot.status != SlotStatus.PENDING:
        raise InvalidTransitionError(f'Only pending slots can be released (status: {slot.status}).')

    slot.release(changed_by=changed_by, reason=reason)
    _drop_cart_entry(slot)
    logger.info('Pending slot %s released (%s)', slot.id, reason or changed_by)
    schedule_changed(slot)
    return slot


# ── Core: Cancellation policy ─────────────────────────────────────────────────

def evaluate_cancellation(slot: Slot, now=None) -> CancellationQuote:
    """
    Apply the cancellation-window policy without changing anything.

    Booked/scheduled slots starting within CANCELLATION_WINDOW_HOURS (inclusive)
    need the cancellation fee and earn no credit; earlier cancellations are
    free and earn a credit. Pending holds are always free and never credited.
    """
    now = now or timezone.now()
    hours = (slot.starts_at - now).total_seconds() / 3600
    within_window = hours <= settings.CANCELLATION_WINDOW_HOURS

    if slot.status == SlotStatus.PENDING:
        return CancellationQuote(
            slot_status=slot.status, hours_until_start=hours, within_window=within_window,
            can_cancel=True, requires_payment=False, fee=Decimal('0'), credit_eligible=False,
        )

    if slot.status in ACTIVE_STATUSES:
        return CancellationQuote(
            slot_status=slot.status, hours_until_start=hours, within_window=within_window,
            can_cancel=True,
            requires_payment=within_window,
            fee=Decimal(settings.CANCELLATION_FEE) if within_window else Decimal('0'),
            credit_eligible=not within_window,
        )

    return CancellationQuote(
        slot_status=slot.status, hours_until_start=hours, within_window=within_window,
        can_cancel=False, requires_payment=False, fee=Decimal('0'), credit_eligible=False,
    )


def _cancel_and_replace(slot: Slot, changed_by: str, reason: str) -> Slot:
    slot.mark_cancelled(changed_by=changed_by, reason=reason)
    replacement = slot.create_replacement()
    logger.info('Slot %s cancelled, replacement %s offered', slot.id, replacement.id)
    return replacement


def _close_student_booking(slot: Slot, grant_credit: bool, now,
                           paid_cancellation=False, cancellation_order=None):
    """
    Move the student's booking for `slot` to CANCELLED.

    A booking that was paid with a credit never mints a new credit: when the
    cancellation would have earned one, the consumed credit is handed back.

    Returns (booking, credit_granted, credit_restored).
    """
    booking = (
        StudentBooking.objects
        .select_for_update()
        .filter(slot=slot, status=StudentBookingStatus.BOOKED)
        .first()
    )
    if booking is None:
        logger.warning('No active student booking found for cancelled slot %s', slot.id)
        return None, False, False

    credit_granted = credit_restored = False
    if booking.redeemed and booking.redeemed_from_id:
        if grant_credit:
            original = StudentBooking.objects.select_for_update().get(pk=booking.redeemed_from_id)
            original.credit_consumed = False
            original.save(update_fields=['credit_consumed', 'updated_at'])
            credit_restored = True
    else:
        credit_granted = grant_credit

    booking.status = StudentBookingStatus.CANCELLED
    booking.cancelled_at = now
    booking.credit_granted = credit_granted
    booking.paid_cancellation = paid_cancellation
    booking.cancellation_order = cancellation_order
    booking.save()
    return booking, credit_granted, credit_restored


@transaction.atomic
def cancel_booking(student, slot: Slot, now=None, changed_by='student') -> CancellationResult:
    """
    Student-initiated cancellation.

      pending                 → released, no credit
      booked/scheduled, >48h  → cancelled + replacement slot, credit granted
      booked/scheduled, ≤48h  → nothing changes; the quote says a fee is due

    Raises:
      NotSlotOwnerError       — slot belongs to someone else
      InvalidTransitionError  — slot cannot be cancelled in its current status
    """
    now = now or timezone.now()
    slot = _lock_slot(slot.pk)
    _ensure_owner(slot, student)
    quote = evaluate_cancellation(slot, now)

    if not quote.can_cancel:
        raise InvalidTransitionError(f'Cannot cancel slot with status: {slot.status}')

    if slot.status == SlotStatus.PENDING:
        slot.release(changed_by=changed_by, reason='Pending hold cancelled by student')
        _drop_cart_entry(slot)
        schedule_changed(slot)
        return CancellationResult(quote=quote, cancelled=True, was_pending=True)

    if quote.requires_payment:
        logger.info(
            'Cancellation of slot %s needs a fee (%.1f h before start)',
            slot.id, quote.hours_until_start,
        )
        return CancellationResult(quote=quote, cancelled=False)

    replacement = _cancel_and_replace(slot, changed_by, 'Cancelled by student outside fee window')
    booking, credit_granted, credit_restored = _close_student_booking(slot, grant_credit=True, now=now)
    schedule_changed(slot)
    if booking is not None:
        transaction.on_commit(
            lambda: send_booking_cancelled(booking, credit_granted=credit_granted or credit_restored)
        )
    return CancellationResult(
        quote=quote, cancelled=True, credit_granted=credit_granted,
        credit_restored=credit_restored, replacement=replacement, booking=booking,
    )


@transaction.atomic
def process_paid_cancellation(slot: Slot, order, changed_by='payment') -> CancellationResult:
    """
    Finish a late cancellation once its fee order is paid: the slot is
    cancelled and re-offered, the booking is closed without credit.
    Re-running for an already cancelled slot is a no-op.
    """
    slot = _lock_slot(slot.pk)
    quote = evaluate_cancellation(slot)

    if slot.status == SlotStatus.CANCELLED:
        logger.info('Paid cancellation for slot %s already processed', slot.id)
        return CancellationResult(quote=quote, cancelled=True, replacement=slot.replacement)

    if slot.status not in ACTIVE_STATUSES:
        raise InvalidTransitionError(f'Cannot cancel slot with status: {slot.status}')

    replacement = _cancel_and_replace(slot, changed_by, f'Late cancellation fee paid (order {order.order_number})')
    booking, _, _ = _close_student_booking(
        slot, grant_credit=False, now=timezone.now(),
        paid_cancellation=True, cancellation_order=order,
    )
    schedule_changed(slot)
    if booking is not None:
        transaction.on_commit(lambda: send_booking_cancelled(booking, paid_cancellation=True))
    return CancellationResult(quote=quote, cancelled=True, replacement=replacement, booking=booking)


# ── Core: Instructor / admin status updates ───────────────────────────────────

@transaction.atomic
def set_slot_status(slot: Slot, status, changed_by='admin', payment_reference=''):
    """
    Status change requested from the instructor calendar.

      pending → booked/scheduled   confirm (e.g. paid at the appointment)
      pending → available          release the hold
      booked ⇄ scheduled           plain status change
      booked/scheduled → cancelled school-initiated: replacement slot + credit
    """
    slot = _lock_slot(slot.pk)
    status = str(status)

    if slot.status == SlotStatus.PENDING and status in ACTIVE_STATUSES:
        return confirm_slot(slot, payment_reference=payment_reference, changed_by=changed_by, status=status)

    if slot.status == SlotStatus.PENDING and status == SlotStatus.AVAILABLE:
        return release_slot(slot, changed_by=changed_by, reason='Released by instructor')

    if slot.status in ACTIVE_STATUSES and status == SlotStatus.CANCELLED:
        replacement = _cancel_and_replace(slot, changed_by, 'Cancelled by the school')
        booking, credit_granted, credit_restored = _close_student_booking(
            slot, grant_credit=True, now=timezone.now(),
        )
        schedule_changed(slot)
        if booking is not None:
            transaction.on_commit(
                lambda: send_booking_cancelled(booking, credit_granted=credit_granted or credit_restored)
            )
        return replacement

    if not (slot.status in ACTIVE_STATUSES and status in ACTIVE_STATUSES):
        raise InvalidTransitionError(f"Cannot move slot from '{slot.status}' to '{status}'.")

    slot.reschedule_status(status, changed_by=changed_by)
    schedule_changed(slot)
    return slot


@transaction.atomic
def create_available_slots(instructor, class_type, date, intervals, amount=None):
    """
    Open AVAILABLE slots for `instructor` on `date`, one per (start, end).

    Raises SlotUnavailableError if any interval overlaps a live slot of the
    instructor, whatever its class type.
    """
    live = Slot.objects.select_for_update().filter(
        instructor=instructor, date=date,
    ).exclude(status=SlotStatus.CANCELLED)

    for start, end in intervals:
        clash = live.filter(start_time__lt=end, end_time__gt=start).first()
        if clash:
            raise SlotUnavailableError(
                f'{start:%H:%M}-{end:%H:%M} overlaps the existing '
                f'{clash.get_class_type_display().lower()} slot '
                f'{clash.start_time:%H:%M}-{clash.end_time:%H:%M}.'
            )

    if amount is None and class_type == ClassType.DRIVING_TEST:
        amount = Decimal(settings.DEFAULT_DRIVING_TEST_PRICE)

    slots = [
        Slot.objects.create(
            instructor=instructor,
            class_type=class_type,
            date=date,
            start_time=start,
            end_time=end,
            amount=amount or Decimal('0'),
        )
        for start, end in intervals
    ]
    logger.info('%d %s slot(s) added for instructor %s on %s', len(slots), class_type, instructor.id, date)
    if slots:
        schedule_changed(slots[0])
    return slots


@transaction.atomic
def delete_available_slot(slot: Slot) -> None:
    """Remove an unbooked slot from the schedule."""
    slot = _lock_slot(slot.pk)
    if not slot.is_free:
        raise InvalidTransitionError(
            f'Only available slots can be deleted (status: {slot.status}).'
        )
    logger.info('Available slot %s deleted', slot.pk)
    schedule_changed(slot)
    slot.delete()


# ── Core: Credits & Redemption ────────────────────────────────────────────────

def available_credits(student, class_type=None, duration_minutes=None):
    """Unconsumed cancellation credits of `student`, oldest first."""
    qs = StudentBooking.objects.filter(student=student).credits()
    if class_type:
        qs = qs.filter(class_type=class_type)
    if duration_minutes is not None:
        qs = qs.filter(duration_minutes=duration_minutes)
    return qs


@transaction.atomic
def redeem_credit(student, slot: Slot, changed_by='student') -> StudentBooking:
    """
    Book an AVAILABLE slot at no charge using the student's oldest credit of
    the same class type and duration.

    Raises:
      SlotUnavailableError    — slot is not free
      NoCreditAvailableError  — no matching credit left
    """
    slot = _lock_slot(slot.pk)
    if not slot.is_free:
        raise SlotUnavailableError('This slot is no longer available. Please choose a different time.')

    credit = (
        available_credits(student, slot.class_type, slot.duration_minutes)
        .select_for_update()
        .first()
    )
    if credit is None:
        hours = slot.duration_minutes / 60
        raise NoCreditAvailableError(
            f'You do not have any {hours:g}-hour cancelled '
            f'{slot.get_class_type_display().lower()} credits available to redeem.'
        )

    slot.book_redeemed(student, changed_by=changed_by)
    credit.credit_consumed = True
    credit.save(update_fields=['credit_consumed', 'updated_at'])

    booking = StudentBooking.objects.create(
        student=student,
        slot=slot,
        instructor=slot.instructor,
        class_type=slot.class_type,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        duration_minutes=slot.duration_minutes,
        amount=Decimal('0'),
        booked_at=slot.confirmed_at,
        redeemed=True,
        redeemed_from=credit,
    )
    logger.info('Student %s redeemed credit %s for slot %s', student.id, credit.id, slot.id)
    schedule_changed(slot)
    transaction.on_commit(lambda: send_credit_redeemed(booking))
    return booking
