from datetime import time, timedelta
from decimal import Decimal

from django.test import TestCase, override_settings

from apps.bookings import engine
from apps.bookings.exceptions import (
    InvalidTransitionError,
    NoCreditAvailableError,
    NotSlotOwnerError,
    SlotNotFoundError,
    SlotUnavailableError,
)
from apps.bookings.models import (
    ClassType,
    PaymentMethod,
    Slot,
    SlotStatus,
    SlotStatusLog,
    StudentBooking,
    StudentBookingStatus,
)
from apps.core.tests.factories import book_slot, make_instructor, make_slot, make_student
from apps.orders.models import Order, OrderType


class ReservePendingTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.student = make_student(first_name='Ana', middle_name='M', last_name='Perez')
        self.slot = make_slot(self.instructor)

    def test_hold_marks_slot_pending_for_student(self):
        engine.reserve_pending(self.student, self.slot, payment_method=PaymentMethod.INSTRUCTOR)

        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.PENDING)
        self.assertEqual(self.slot.student, self.student)
        self.assertEqual(self.slot.student_name, 'Ana M Perez')
        self.assertEqual(self.slot.payment_method, PaymentMethod.INSTRUCTOR)
        self.assertFalse(self.slot.paid)
        self.assertIsNotNone(self.slot.reserved_at)
        log = SlotStatusLog.objects.get(slot=self.slot)
        self.assertEqual((log.from_status, log.to_status), ('available', 'pending'))

    def test_second_hold_is_rejected(self):
        engine.reserve_pending(self.student, self.slot)
        with self.assertRaises(SlotUnavailableError):
            engine.reserve_pending(make_student(), self.slot)

    def test_driving_test_without_price_uses_default(self):
        slot = make_slot(self.instructor, start=time(12, 0), end=time(13, 0), amount=Decimal('0'))
        engine.reserve_pending(self.student, slot)
        slot.refresh_from_db()
        self.assertEqual(slot.amount, Decimal('50.00'))

    def test_lesson_fields_are_stored(self):
        slot = make_slot(self.instructor, class_type=ClassType.DRIVING_LESSON, start=time(13, 0), end=time(15, 0))
        engine.reserve_pending(
            self.student, slot,
            pickup_location='123 Ocean Dr', dropoff_location='Airport', package_reference='pkg-4h',
        )
        slot.refresh_from_db()
        self.assertEqual(slot.pickup_location, '123 Ocean Dr')
        self.assertEqual(slot.dropoff_location, 'Airport')
        self.assertEqual(slot.package_reference, 'pkg-4h')


class FindSlotTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.slot = make_slot(self.instructor)

    def test_by_time(self):
        found = engine.find_slot(
            self.instructor.id, ClassType.DRIVING_TEST, self.slot.date, time(10, 0), time(11, 0),
        )
        self.assertEqual(found, self.slot)

    def test_live_slot_wins_over_cancelled_history(self):
        student = make_student()
        book_slot(student, self.slot)
        result = engine.cancel_booking(student, self.slot)

        found = engine.find_slot(self.instructor.id, ClassType.DRIVING_TEST, self.slot.date, time(10, 0))
        self.assertEqual(found, result.replacement)

    def test_missing_or_malformed_id(self):
        with self.assertRaises(SlotNotFoundError):
            engine.find_slot(self.instructor.id, None, None, None, slot_id='not-a-uuid')
        with self.assertRaises(SlotNotFoundError):
            engine.find_slot(self.instructor.id, ClassType.DRIVING_LESSON, self.slot.date, time(10, 0))


class ConfirmAndReleaseTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.student = make_student()
        self.slot = make_slot(self.instructor)

    def test_confirm_creates_student_booking(self):
        booking = book_slot(self.student, self.slot, payment_reference='pay_abc')

        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.BOOKED)
        self.assertTrue(self.slot.paid)
        self.assertEqual(self.slot.payment_reference, 'pay_abc')
        self.assertIsNotNone(self.slot.confirmed_at)
        self.assertEqual(booking.student, self.student)
        self.assertEqual(booking.status, StudentBookingStatus.BOOKED)
        self.assertEqual(booking.duration_minutes, 60)
        self.assertEqual(booking.amount, Decimal('50.00'))

    def test_confirm_twice_is_idempotent(self):
        first = book_slot(self.student, self.slot)
        second = engine.confirm_slot(self.slot)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(StudentBooking.objects.filter(slot=self.slot).count(), 1)

    def test_confirm_available_slot_is_rejected(self):
        with self.assertRaises(InvalidTransitionError):
            engine.confirm_slot(self.slot)

    def test_release_clears_the_hold(self):
        engine.reserve_pending(
            self.student, self.slot, pickup_location='Home', package_reference='pkg',
        )
        engine.release_slot(self.slot, reason='Payment failed')

        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.AVAILABLE)
        self.assertIsNone(self.slot.student)
        self.assertEqual(self.slot.student_name, '')
        self.assertEqual(self.slot.payment_method, '')
        self.assertEqual(self.slot.pickup_location, '')
        self.assertEqual(self.slot.package_reference, '')
        self.assertIsNone(self.slot.replacement)
        self.assertFalse(StudentBooking.objects.exists())

    def test_release_by_other_student_is_rejected(self):
        engine.reserve_pending(self.student, self.slot)
        with self.assertRaises(NotSlotOwnerError):
            engine.release_slot(self.slot, student=make_student())

    def test_release_booked_slot_is_rejected(self):
        book_slot(self.student, self.slot)
        with self.assertRaises(InvalidTransitionError):
            engine.release_slot(self.slot)


class CancellationPolicyTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.student = make_student()
        self.slot = make_slot(self.instructor)

    def test_exactly_48_hours_requires_fee(self):
        book_slot(self.student, self.slot)
        now = self.slot.starts_at - timedelta(hours=48)

        quote = engine.evaluate_cancellation(self.slot, now)

        self.assertTrue(quote.within_window)
        self.assertTrue(quote.requires_payment)
        self.assertEqual(quote.fee, Decimal('90'))
        self.assertFalse(quote.credit_eligible)

    def test_just_over_48_hours_is_free_with_credit(self):
        book_slot(self.student, self.slot)
        now = self.slot.starts_at - timedelta(hours=48, minutes=1)

        quote = engine.evaluate_cancellation(self.slot, now)

        self.assertFalse(quote.within_window)
        self.assertFalse(quote.requires_payment)
        self.assertEqual(quote.fee, Decimal('0'))
        self.assertTrue(quote.credit_eligible)

    def test_pending_is_free_without_credit(self):
        engine.reserve_pending(self.student, self.slot)
        quote = engine.evaluate_cancellation(self.slot, self.slot.starts_at - timedelta(hours=2))
        self.assertTrue(quote.can_cancel)
        self.assertFalse(quote.requires_payment)
        self.assertFalse(quote.credit_eligible)

    def test_available_slot_cannot_be_cancelled(self):
        quote = engine.evaluate_cancellation(self.slot)
        self.assertFalse(quote.can_cancel)

    @override_settings(CANCELLATION_WINDOW_HOURS=24, CANCELLATION_FEE='35.00')
    def test_window_and_fee_come_from_settings(self):
        book_slot(self.student, self.slot)
        quote = engine.evaluate_cancellation(self.slot, self.slot.starts_at - timedelta(hours=30))
        self.assertFalse(quote.requires_payment)
        quote = engine.evaluate_cancellation(self.slot, self.slot.starts_at - timedelta(hours=20))
        self.assertEqual(quote.fee, Decimal('35.00'))


class CancelBookingTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.student = make_student()
        self.slot = make_slot(self.instructor)
        self.booking = book_slot(self.student, self.slot)

    def test_free_cancellation_replaces_slot_and_grants_credit(self):
        result = engine.cancel_booking(self.student, self.slot)

        self.assertTrue(result.cancelled)
        self.assertTrue(result.credit_granted)
        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.CANCELLED)

        replacement = self.slot.replacement
        self.assertEqual(replacement, result.replacement)
        self.assertEqual(replacement.status, SlotStatus.AVAILABLE)
        self.assertIsNone(replacement.student)
        self.assertEqual(
            (replacement.date, replacement.start_time, replacement.end_time, replacement.amount),
            (self.slot.date, self.slot.start_time, self.slot.end_time, self.slot.amount),
        )

        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, StudentBookingStatus.CANCELLED)
        self.assertIsNotNone(self.booking.cancelled_at)
        self.assertTrue(self.booking.has_credit)

    def test_cancelled_slot_is_never_reused(self):
        result = engine.cancel_booking(self.student, self.slot)
        with self.assertRaises(SlotUnavailableError):
            engine.reserve_pending(make_student(), self.slot)
        engine.reserve_pending(make_student(), result.replacement)

    def test_within_window_changes_nothing(self):
        now = self.slot.starts_at - timedelta(hours=10)

        result = engine.cancel_booking(self.student, self.slot, now=now)

        self.assertFalse(result.cancelled)
        self.assertTrue(result.quote.requires_payment)
        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.BOOKED)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, StudentBookingStatus.BOOKED)
        self.assertEqual(Slot.objects.count(), 1)

    def test_cancelling_pending_hold_releases_it(self):
        slot = make_slot(self.instructor, start=time(14, 0), end=time(15, 0))
        engine.reserve_pending(self.student, slot)

        result = engine.cancel_booking(self.student, slot)

        self.assertTrue(result.was_pending)
        self.assertIsNone(result.replacement)
        slot.refresh_from_db()
        self.assertEqual(slot.status, SlotStatus.AVAILABLE)
        self.assertFalse(StudentBooking.objects.filter(slot=slot).exists())

    def test_only_owner_can_cancel(self):
        with self.assertRaises(NotSlotOwnerError):
            engine.cancel_booking(make_student(), self.slot)

    def test_paid_cancellation_forfeits_credit(self):
        order = Order.objects.create(
            student=self.student, order_number=1,
            order_type=OrderType.CANCEL_DRIVING_TEST, total=Decimal('90'),
        )

        result = engine.process_paid_cancellation(self.slot, order)

        self.assertTrue(result.cancelled)
        self.assertIsNotNone(result.replacement)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, StudentBookingStatus.CANCELLED)
        self.assertTrue(self.booking.paid_cancellation)
        self.assertEqual(self.booking.cancellation_order, order)
        self.assertFalse(self.booking.credit_granted)

    def test_paid_cancellation_runs_once(self):
        order = Order.objects.create(
            student=self.student, order_number=1,
            order_type=OrderType.CANCEL_DRIVING_TEST, total=Decimal('90'),
        )
        engine.process_paid_cancellation(self.slot, order)
        engine.process_paid_cancellation(self.slot, order)
        self.assertEqual(Slot.objects.count(), 2)


class RedeemCreditTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.student = make_student()

    def _credit(self, start, class_type=ClassType.DRIVING_TEST, end=None):
        end = end or time(start.hour + 1, 0)
        slot = make_slot(self.instructor, class_type=class_type, start=start, end=end)
        book_slot(self.student, slot)
        engine.cancel_booking(self.student, slot)
        return StudentBooking.objects.get(slot=slot)

    def test_redeem_books_slot_for_free_using_oldest_credit(self):
        older = self._credit(time(8, 0))
        newer = self._credit(time(9, 0))
        target = make_slot(self.instructor, days_ahead=12)

        booking = engine.redeem_credit(self.student, target)

        target.refresh_from_db()
        self.assertEqual(target.status, SlotStatus.BOOKED)
        self.assertEqual(target.payment_method, PaymentMethod.REDEEMED)
        self.assertTrue(target.paid)
        self.assertEqual(booking.amount, Decimal('0'))
        self.assertTrue(booking.redeemed)
        self.assertEqual(booking.redeemed_from, older)
        older.refresh_from_db()
        newer.refresh_from_db()
        self.assertTrue(older.credit_consumed)
        self.assertFalse(newer.credit_consumed)

    def test_without_credit(self):
        with self.assertRaises(NoCreditAvailableError):
            engine.redeem_credit(self.student, make_slot(self.instructor))

    def test_duration_must_match(self):
        self._credit(time(8, 0))
        two_hours = make_slot(self.instructor, days_ahead=12, start=time(13, 0), end=time(15, 0))
        with self.assertRaises(NoCreditAvailableError):
            engine.redeem_credit(self.student, two_hours)

    def test_class_type_must_match(self):
        self._credit(time(8, 0))
        lesson = make_slot(self.instructor, class_type=ClassType.DRIVING_LESSON, days_ahead=12)
        with self.assertRaises(NoCreditAvailableError):
            engine.redeem_credit(self.student, lesson)

    def test_credit_is_used_once(self):
        self._credit(time(8, 0))
        engine.redeem_credit(self.student, make_slot(self.instructor, days_ahead=12))
        with self.assertRaises(NoCreditAvailableError):
            engine.redeem_credit(self.student, make_slot(self.instructor, days_ahead=13))

    def test_cancelling_a_redemption_restores_the_original_credit(self):
        original = self._credit(time(8, 0))
        target = make_slot(self.instructor, days_ahead=12)
        redemption = engine.redeem_credit(self.student, target)

        result = engine.cancel_booking(self.student, target)

        self.assertTrue(result.credit_restored)
        self.assertFalse(result.credit_granted)
        original.refresh_from_db()
        redemption.refresh_from_db()
        self.assertTrue(original.has_credit)
        self.assertFalse(redemption.credit_granted)
        self.assertEqual(engine.available_credits(self.student).count(), 1)


class SetSlotStatusTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.student = make_student()
        self.slot = make_slot(self.instructor)

    def test_instructor_confirms_pay_at_appointment_hold(self):
        engine.reserve_pending(self.student, self.slot, payment_method=PaymentMethod.INSTRUCTOR)

        engine.set_slot_status(self.slot, SlotStatus.SCHEDULED, changed_by='admin')

        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.SCHEDULED)
        self.assertTrue(StudentBooking.objects.filter(slot=self.slot).exists())

    def test_booked_and_scheduled_swap(self):
        book_slot(self.student, self.slot)
        engine.set_slot_status(self.slot, SlotStatus.SCHEDULED)
        engine.set_slot_status(self.slot, SlotStatus.BOOKED)
        self.slot.refresh_from_db()
        self.assertEqual(self.slot.status, SlotStatus.BOOKED)

    def test_school_cancellation_always_grants_credit(self):
        # inside the fee window, yet the student keeps a credit
        slot = make_slot(self.instructor, days_ahead=1, start=time(16, 0), end=time(17, 0))
        booking = book_slot(self.student, slot)

        replacement = engine.set_slot_status(slot, SlotStatus.CANCELLED)

        self.assertEqual(replacement.status, SlotStatus.AVAILABLE)
        booking.refresh_from_db()
        self.assertTrue(booking.has_credit)
        self.assertFalse(booking.paid_cancellation)

    def test_pending_back_to_available(self):
        engine.reserve_pending(self.student, self.slot)
        engine.set_slot_status(self.slot, SlotStatus.AVAILABLE)
        self.slot.refresh_from_db()
        self.assertTrue(self.slot.is_free)

    def test_disallowed_transitions(self):
        with self.assertRaises(InvalidTransitionError):
            engine.set_slot_status(self.slot, SlotStatus.CANCELLED)
        with self.assertRaises(InvalidTransitionError):
            engine.set_slot_status(self.slot, SlotStatus.PENDING)
        book_slot(self.student, self.slot)
        with self.assertRaises(InvalidTransitionError):
            engine.set_slot_status(self.slot, SlotStatus.AVAILABLE)


class ScheduleManagementTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.day = make_slot(self.instructor).date

    def test_consecutive_slots(self):
        slots = engine.create_available_slots(
            self.instructor, ClassType.DRIVING_LESSON, self.day,
            [(time(13, 0), time(15, 0)), (time(15, 0), time(17, 0))],
            amount=Decimal('120'),
        )
        self.assertEqual(len(slots), 2)
        self.assertTrue(all(s.status == SlotStatus.AVAILABLE for s in slots))

    def test_overlap_with_any_class_type_is_rejected(self):
        with self.assertRaises(SlotUnavailableError):
            engine.create_available_slots(
                self.instructor, ClassType.DRIVING_LESSON, self.day, [(time(10, 30), time(12, 30))],
            )

    def test_driving_test_slots_get_default_price(self):
        [slot] = engine.create_available_slots(
            self.instructor, ClassType.DRIVING_TEST, self.day, [(time(12, 0), time(13, 0))],
        )
        self.assertEqual(slot.amount, Decimal('50.00'))

    def test_only_free_slots_can_be_deleted(self):
        slot = Slot.objects.get(instructor=self.instructor)
        engine.reserve_pending(make_student(), slot)
        with self.assertRaises(InvalidTransitionError):
            engine.delete_available_slot(slot)
        engine.release_slot(slot)
        engine.delete_available_slot(slot)
        self.assertFalse(Slot.objects.filter(pk=slot.pk).exists())
