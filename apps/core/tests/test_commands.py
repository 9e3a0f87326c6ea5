from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from apps.bookings import engine
from apps.bookings.models import Slot, SlotStatus
from apps.cart import services as cart_services
from apps.instructors.models import Instructor
from apps.orders import services as order_services
from apps.orders.models import Order, OrderStatus
from apps.ticketclasses import services as ticketclass_services
from apps.ticketclasses.models import Enrollment, EnrollmentStatus, TicketClass

from .factories import make_instructor, make_slot, make_student, make_ticket_class


class ReleaseStaleHoldsTests(TestCase):
    def setUp(self):
        self.instructor = make_instructor()
        self.student = make_student()

    def _age(self, slot, minutes):
        Slot.objects.filter(pk=slot.pk).update(reserved_at=timezone.now() - timedelta(minutes=minutes))

    def _run(self, *args):
        out = StringIO()
        call_command('release_stale_holds', *args, stdout=out)
        return out.getvalue()

    def test_old_online_hold_is_released(self):
        slot = make_slot(self.instructor)
        engine.reserve_pending(self.student, slot)
        self._age(slot, 30)

        output = self._run()

        slot.refresh_from_db()
        self.assertEqual(slot.status, SlotStatus.AVAILABLE)
        self.assertIn('released 1 holds', output)

    def test_fresh_and_pay_at_appointment_holds_stay(self):
        fresh = make_slot(self.instructor)
        engine.reserve_pending(self.student, fresh)
        desk = make_slot(self.instructor, days_ahead=11)
        engine.reserve_pending(self.student, desk, payment_method='instructor')
        self._age(desk, 120)

        self._run()

        fresh.refresh_from_db()
        desk.refresh_from_db()
        self.assertEqual(fresh.status, SlotStatus.PENDING)
        self.assertEqual(desk.status, SlotStatus.PENDING)

    def test_unpaid_order_is_cancelled(self):
        slot = make_slot(self.instructor)
        cart_services.add_to_cart(self.student, slot)
        order = order_services.create_order_from_cart(self.student)
        Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(hours=1))

        output = self._run('--minutes', '30')

        order.refresh_from_db()
        slot.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.CANCELLED)
        self.assertEqual(slot.status, SlotStatus.AVAILABLE)
        self.assertIn('cancelled 1 orders', output)

    def test_seat_never_checked_out_is_freed(self):
        ticket_class = make_ticket_class(capacity=1)
        enrollment = ticketclass_services.request_enrollment(self.student, ticket_class)
        Enrollment.objects.filter(pk=enrollment.pk).update(created_at=timezone.now() - timedelta(seconds=1))

        output = self._run('--minutes', '0')

        self.assertEqual(ticket_class.available_spots, 1)
        self.assertIn('freed 1 seats', output)

    def test_fresh_and_ordered_seats_stay(self):
        fresh = make_ticket_class()
        ticketclass_services.request_enrollment(self.student, fresh)
        ordered = make_ticket_class()
        cart_services.add_class_to_cart(self.student, ordered)
        order_services.create_order_from_cart(self.student)
        Enrollment.objects.filter(ticket_class=ordered).update(created_at=timezone.now() - timedelta(hours=1))

        self._run()

        self.assertEqual(fresh.available_spots, 1)
        self.assertEqual(ordered.available_spots, 1)
        self.assertEqual(Enrollment.objects.get(ticket_class=ordered).status, EnrollmentStatus.PENDING)


class SeedDataTests(TestCase):
    def test_seed_is_repeatable(self):
        call_command('seed_data', stdout=StringIO())
        slots = Slot.objects.count()

        call_command('seed_data', stdout=StringIO())

        self.assertGreater(slots, 0)
        self.assertEqual(Slot.objects.count(), slots)
        self.assertEqual(Instructor.objects.count(), 3)
        self.assertEqual(TicketClass.objects.count(), 2)

    def test_flush(self):
        make_slot(make_instructor())
        call_command('seed_data', '--flush', stdout=StringIO())
        self.assertEqual(Instructor.objects.count(), 3)
