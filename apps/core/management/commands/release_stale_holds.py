"""
management command: release_stale_holds

Frees slots and class seats held as pending whose checkout was never paid,
and cancels the orders those holds belonged to.

Run via OS cron every 5 minutes:
  */5 * * * *  /path/to/venv/bin/python manage.py release_stale_holds

Pay-at-appointment holds wait for the instructor and are left alone.
"""
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.bookings import engine
from apps.bookings.exceptions import BookingEngineError
from apps.bookings.models import PaymentMethod, Slot, SlotStatus
from apps.orders.models import Order, OrderPaymentStatus, OrderStatus
from apps.orders import services as order_services
from apps.ticketclasses import services as ticketclass_services
from apps.ticketclasses.models import Enrollment, EnrollmentStatus


class Command(BaseCommand):
    help = 'Release stale pending slot holds and class seats, and cancel their unpaid orders'

    def add_arguments(self, parser):
        parser.add_argument(
            '--minutes', type=int, default=None,
            help='Hold age in minutes (default: PENDING_HOLD_TTL_MINUTES)',
        )

    def handle(self, *args, **options):
        minutes = options['minutes']
        if minutes is None:
            minutes = settings.PENDING_HOLD_TTL_MINUTES
        cutoff = timezone.now() - timedelta(minutes=minutes)

        # 1. Unpaid orders past the TTL: cancelling releases their holds
        stale_orders = Order.objects.filter(
            status=OrderStatus.PENDING,
            payment_status=OrderPaymentStatus.PENDING,
            created_at__lt=cutoff,
        ).select_related('student')
        count_orders = 0
        for order in stale_orders:
            try:
                order_services.apply_payment_result(order, OrderPaymentStatus.CANCELLED, reference='expired')
                count_orders += 1
            except BookingEngineError as exc:
                self.stderr.write(f'Order #{order.order_number}: {exc}')

        # 2. Online holds that never reached checkout
        stale_slots = Slot.objects.filter(
            status=SlotStatus.PENDING,
            payment_method=PaymentMethod.ONLINE,
            reserved_at__lt=cutoff,
            order__isnull=True,
        )
        count_slots = 0
        for slot in stale_slots:
            try:
                engine.release_slot(slot, changed_by='system_cron', reason='Hold expired')
                count_slots += 1
            except BookingEngineError as exc:
                self.stderr.write(f'Slot {slot.id}: {exc}')

        # 3. Class seats requested but never checked out
        stale_seats = Enrollment.objects.filter(
            status=EnrollmentStatus.PENDING,
            created_at__lt=cutoff,
            order__isnull=True,
        ).select_related('student')
        count_seats = 0
        for enrollment in stale_seats:
            try:
                ticketclass_services.cancel_enrollment(enrollment.student, enrollment, enforce_policy=False)
                count_seats += 1
            except BookingEngineError as exc:
                self.stderr.write(f'Enrollment {enrollment.id}: {exc}')

        self.stdout.write(
            self.style.SUCCESS(
                f'release_stale_holds: cancelled {count_orders} orders, '
                f'released {count_slots} holds, freed {count_seats} seats'
            )
        )
