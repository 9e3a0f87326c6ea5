"""
Seed management command.

Populates the database with demo data:
  - 2 locations
  - 3 instructors across them
  - a week of available driving-test and driving-lesson slots
  - 2 upcoming ticket classes

Usage:
    python manage.py seed_data
    python manage.py seed_data --flush   # wipe and re-seed
"""
from datetime import time, timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.bookings.models import ClassType, Slot, SlotStatus, SlotStatusLog, StudentBooking
from apps.cart.models import CartItem
from apps.instructors.models import Instructor
from apps.locations.models import Location
from apps.orders.models import Order
from apps.ticketclasses.models import Enrollment, TicketClass, TicketClassType

SEED_DAYS = 7
TEST_HOURS = [time(9, 0), time(10, 0), time(11, 0)]
LESSON_BLOCKS = [(time(13, 0), time(15, 0)), (time(15, 0), time(17, 0))]


class Command(BaseCommand):
    help = 'Seed demo locations, instructors, slots and ticket classes'

    def add_arguments(self, parser):
        parser.add_argument(
            '--flush', action='store_true',
            help='Delete all existing data before creating fresh records',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['flush']:
            self.stdout.write('Flushing existing data...')
            CartItem.objects.all().delete()
            StudentBooking.objects.all().delete()
            SlotStatusLog.objects.all().delete()
            Slot.objects.update(replacement=None)
            Slot.objects.all().delete()
            Enrollment.objects.all().delete()
            Order.objects.all().delete()
            TicketClass.all_objects.all().delete()
            Instructor.all_objects.all().delete()
            Location.all_objects.all().delete()

        self.stdout.write('Seeding locations...')
        downtown, _ = Location.objects.get_or_create(
            slug='downtown',
            defaults={
                'name': 'Downtown Office',
                'address': '120 Biscayne Blvd',
                'city': 'Miami',
                'zip_code': '33132',
                'phone': '3055550100',
                'email': 'downtown@example.com',
            },
        )
        north, _ = Location.objects.get_or_create(
            slug='north-miami',
            defaults={
                'name': 'North Miami Test Site',
                'address': '750 NE 125th St',
                'city': 'North Miami',
                'zip_code': '33161',
                'phone': '3055550101',
                'email': 'north@example.com',
            },
        )
        self.stdout.write(self.style.SUCCESS('  ✔ 2 locations'))

        self.stdout.write('Seeding instructors...')
        instructors_data = [
            {'name': 'Maria Lopez',  'locations': [downtown, north], 'test': True,  'lesson': True,  'years': 12},
            {'name': 'James Carter', 'locations': [downtown],        'test': True,  'lesson': False, 'years': 6},
            {'name': 'Ana Ruiz',     'locations': [north],           'test': False, 'lesson': True,  'years': 4},
        ]
        instructors = []
        for data in instructors_data:
            instructor, _ = Instructor.objects.get_or_create(
                name=data['name'],
                defaults={
                    'teaches_driving_test': data['test'],
                    'teaches_driving_lesson': data['lesson'],
                    'years_experience': data['years'],
                },
            )
            instructor.locations.set(data['locations'])
            instructors.append(instructor)
        self.stdout.write(self.style.SUCCESS(f'  ✔ {len(instructors)} instructors'))

        self.stdout.write('Seeding slots...')
        today = timezone.localdate()
        created = 0
        live_slots = Slot.objects.exclude(status=SlotStatus.CANCELLED)
        for offset in range(1, SEED_DAYS + 1):
            day = today + timedelta(days=offset)
            if day.weekday() == 6:
                continue
            for instructor in instructors:
                if instructor.teaches_driving_test:
                    for start in TEST_HOURS:
                        _, made = live_slots.get_or_create(
                            instructor=instructor, class_type=ClassType.DRIVING_TEST,
                            date=day, start_time=start,
                            defaults={'end_time': time(start.hour + 1, 0), 'amount': Decimal('50')},
                        )
                        created += made
                if instructor.teaches_driving_lesson:
                    for start, end in LESSON_BLOCKS:
                        _, made = live_slots.get_or_create(
                            instructor=instructor, class_type=ClassType.DRIVING_LESSON,
                            date=day, start_time=start,
                            defaults={'end_time': end, 'amount': Decimal('120')},
                        )
                        created += made
        self.stdout.write(self.style.SUCCESS(f'  ✔ {created} available slots'))

        self.stdout.write('Seeding ticket classes...')
        TicketClass.objects.get_or_create(
            location=downtown, class_type=TicketClassType.DATE, date=today + timedelta(days=3),
            defaults={'title': 'D.A.T.E. Course', 'hour': time(9, 0), 'price': Decimal('40'),
                      'instructor': instructors[0]},
        )
        TicketClass.objects.get_or_create(
            location=north, class_type=TicketClassType.BDI, date=today + timedelta(days=5),
            defaults={'title': 'Basic Driver Improvement', 'hour': time(18, 0), 'price': Decimal('25'),
                      'capacity': 20},
        )
        self.stdout.write(self.style.SUCCESS('  ✔ 2 ticket classes'))

        self.stdout.write(self.style.SUCCESS('\n✅ Seed complete!'))
