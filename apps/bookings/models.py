"""
Bookings app models:
  - Slot           : instructor-side bookable interval with the status machine
  - StudentBooking : student-side record of a booked / cancelled slot (credits)
  - SlotStatusLog  : audit trail of every slot status change
"""
from datetime import datetime

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.models import UUIDModel, TimestampedModel
from apps.instructors.models import Instructor
from apps.students.models import Student

from .exceptions import InvalidTransitionError


class ClassType(models.TextChoices):
    DRIVING_TEST   = 'driving_test',   'Driving Test'
    DRIVING_LESSON = 'driving_lesson', 'Driving Lesson'


class SlotStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    PENDING   = 'pending',   'Pending'
    BOOKED    = 'booked',    'Booked'
    SCHEDULED = 'scheduled', 'Scheduled'
    CANCELLED = 'cancelled', 'Cancelled'


class PaymentMethod(models.TextChoices):
    ONLINE     = 'online',     'Online'
    INSTRUCTOR = 'instructor', 'Pay at appointment'
    REDEEMED   = 'redeemed',   'Redeemed credit'


# Keyed by raw string values so lookups work for both enum members and DB strings
ALLOWED_TRANSITIONS = {
    'available': {'pending', 'booked'},
    'pending':   {'available', 'booked', 'scheduled'},
    'booked':    {'scheduled', 'cancelled'},
    'scheduled': {'booked', 'cancelled'},
    'cancelled': set(),
}

ACTIVE_STATUSES = (SlotStatus.BOOKED, SlotStatus.SCHEDULED)


def _minutes(t) -> int:
    return t.hour * 60 + t.minute


# ── Slot ──────────────────────────────────────────────────────────────────────

class Slot(UUIDModel, TimestampedModel):
    """
    One bookable interval in an instructor's driving-test or driving-lesson
    schedule. Status changes go through the transition methods below, never
    through direct field writes.

    A cancelled slot is kept for history; its time is re-offered through a
    fresh AVAILABLE slot linked via `replacement`.
    """
    instructor = models.ForeignKey(Instructor, on_delete=models.PROTECT, related_name='slots')
    class_type = models.CharField(max_length=20, choices=ClassType.choices, db_index=True)
    date = models.DateField(db_index=True)
    start_time = models.TimeField()
    end_time = models.TimeField()

    status = models.CharField(
        max_length=12, choices=SlotStatus.choices,
        default=SlotStatus.AVAILABLE, db_index=True,
    )
    student = models.ForeignKey(
        Student, on_delete=models.PROTECT, null=True, blank=True, related_name='slots',
    )
    student_name = models.CharField(max_length=200, blank=True)

    amount = models.DecimalField(
        max_digits=8, decimal_places=2, default=0,
        validators=[MinValueValidator(0)],
    )
    paid = models.BooleanField(default=False)
    payment_method = models.CharField(max_length=12, choices=PaymentMethod.choices, blank=True)
    payment_reference = models.CharField(max_length=120, blank=True)
    reserved_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)

    order = models.ForeignKey(
        'orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='slots',
    )

    # Driving lessons only
    pickup_location = models.CharField(max_length=255, blank=True)
    dropoff_location = models.CharField(max_length=255, blank=True)
    package_reference = models.CharField(
        max_length=64, blank=True,
        help_text='Lesson package the slot was booked under',
    )

    replacement = models.OneToOneField(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='replaces',
    )

    class Meta:
        verbose_name = 'Slot'
        verbose_name_plural = 'Slots'
        ordering = ['date', 'start_time']
        constraints = [
            # Cancelled slots stay as history, so only live slots must be unique
            models.UniqueConstraint(
                fields=['instructor', 'class_type', 'date', 'start_time'],
                condition=~models.Q(status='cancelled'),
                name='uq_live_slot',
            ),
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F('start_time')),
                name='ck_slot_end_after_start',
            ),
        ]

    def __str__(self):
        return (
            f"{self.instructor.name} {self.get_class_type_display()} "
            f"{self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M} [{self.status}]"
        )

    @property
    def starts_at(self):
        """Aware datetime of the slot start in the school's time zone."""
        naive = datetime.combine(self.date, self.start_time)
        return timezone.make_aware(naive, timezone.get_current_timezone())

    @property
    def duration_minutes(self):
        return _minutes(self.end_time) - _minutes(self.start_time)

    @property
    def is_free(self):
        return self.status == SlotStatus.AVAILABLE and self.student_id is None

    @property
    def is_active_booking(self):
        return self.status in ACTIVE_STATUSES

    # ── State transition helpers ──────────────────────────────────────────────

    def hold(self, student, payment_method, amount, changed_by='student', **lesson_fields):
        """AVAILABLE → PENDING for `student` while payment is outstanding."""
        self._transition(SlotStatus.PENDING, changed_by)
        self.student = student
        self.student_name = student.full_name
        self.payment_method = payment_method
        self.amount = amount
        self.paid = False
        self.reserved_at = timezone.now()
        self.pickup_location = lesson_fields.get('pickup_location', '') or ''
        self.dropoff_location = lesson_fields.get('dropoff_location', '') or ''
        self.package_reference = lesson_fields.get('package_reference', '') or ''
        self.save()

    def confirm(self, payment_reference='', changed_by='system', status=SlotStatus.BOOKED):
        """PENDING → BOOKED/SCHEDULED after payment or instructor confirmation."""
        self._transition(status, changed_by)
        self.paid = True
        self.payment_reference = payment_reference or self.payment_reference
        self.confirmed_at = timezone.now()
        self.save()

    def book_redeemed(self, student, changed_by='student'):
        """AVAILABLE → BOOKED paid with a cancellation credit."""
        self._transition(SlotStatus.BOOKED, changed_by, 'Booked with cancellation credit')
        now = timezone.now()
        self.student = student
        self.student_name = student.full_name
        self.payment_method = PaymentMethod.REDEEMED
        self.paid = True
        self.reserved_at = now
        self.confirmed_at = now
        self.save()

    def release(self, changed_by='system', reason=''):
        """PENDING → AVAILABLE, wiping every trace of the hold."""
        self._transition(SlotStatus.AVAILABLE, changed_by, reason)
        self.student = None
        self.student_name = ''
        self.payment_method = ''
        self.payment_reference = ''
        self.paid = False
        self.reserved_at = None
        self.confirmed_at = None
        self.order = None
        self.pickup_location = ''
        self.dropoff_location = ''
        self.package_reference = ''
        self.save()

    def reschedule_status(self, status, changed_by='admin', reason=''):
        """BOOKED ↔ SCHEDULED."""
        self._transition(status, changed_by, reason)
        self.save(update_fields=['status', 'updated_at'])

    def mark_cancelled(self, changed_by='student', reason=''):
        self._transition(SlotStatus.CANCELLED, changed_by, reason)
        self.save(update_fields=['status', 'updated_at'])

    def create_replacement(self):
        """Offer the cancelled slot's time again as a fresh AVAILABLE slot."""
        replacement = Slot.objects.create(
            instructor=self.instructor,
            class_type=self.class_type,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            amount=self.amount,
            status=SlotStatus.AVAILABLE,
        )
        self.replacement = replacement
        self.save(update_fields=['replacement', 'updated_at'])
        return replacement

    def _transition(self, new_status, changed_by, reason=''):
        old_status, new_status = str(self.status), str(new_status)
        if new_status not in ALLOWED_TRANSITIONS.get(old_status, set()):
            raise InvalidTransitionError(
                f"Cannot move slot from '{old_status}' to '{new_status}'."
            )
        self.status = new_status
        SlotStatusLog.objects.create(
            slot=self,
            from_status=old_status,
            to_status=new_status,
            changed_by=changed_by,
            reason=reason,
        )

    def as_public_dict(self):
        """Schedule view for students: no personal data of other students."""
        return {
            'id': str(self.id),
            'instructor_id': str(self.instructor_id),
            'class_type': self.class_type,
            'date': self.date.isoformat(),
            'start': self.start_time.strftime('%H:%M'),
            'end': self.end_time.strftime('%H:%M'),
            'status': self.status,
            'amount': str(self.amount),
        }

    def as_dict(self):
        data = self.as_public_dict()
        data.update({
            'student_id': str(self.student_id) if self.student_id else None,
            'student_name': self.student_name,
            'paid': self.paid,
            'payment_method': self.payment_method,
            'order_id': str(self.order_id) if self.order_id else None,
            'pickup_location': self.pickup_location,
            'dropoff_location': self.dropoff_location,
            'reserved_at': self.reserved_at.isoformat() if self.reserved_at else None,
            'confirmed_at': self.confirmed_at.isoformat() if self.confirmed_at else None,
        })
        return data


# ── Student-side bookings & credits ───────────────────────────────────────────

class StudentBookingStatus(models.TextChoices):
    BOOKED    = 'booked',    'Booked'
    CANCELLED = 'cancelled', 'Cancelled'


class StudentBookingQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=StudentBookingStatus.BOOKED)

    def credits(self):
        """Cancelled bookings that still carry an unconsumed credit, oldest first."""
        return self.filter(
            status=StudentBookingStatus.CANCELLED,
            credit_granted=True,
            credit_consumed=False,
        ).order_by('cancelled_at', 'created_at')


class StudentBooking(UUIDModel, TimestampedModel):
    """
    The student's copy of a booked slot. On cancellation it is kept with
    status CANCELLED; when cancelled outside the fee window it carries a
    credit that can later be redeemed for a slot of the same class type
    and duration.
    """
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name='bookings')
    slot = models.ForeignKey(Slot, on_delete=models.PROTECT, related_name='student_bookings')
    instructor = models.ForeignKey(Instructor, on_delete=models.PROTECT, related_name='student_bookings')
    class_type = models.CharField(max_length=20, choices=ClassType.choices)
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    duration_minutes = models.PositiveIntegerField()
    amount = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    order = models.ForeignKey(
        'orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='bookings',
    )

    status = models.CharField(
        max_length=10, choices=StudentBookingStatus.choices,
        default=StudentBookingStatus.BOOKED, db_index=True,
    )
    booked_at = models.DateTimeField(default=timezone.now)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    redeemed = models.BooleanField(default=False)
    redeemed_from = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='redemptions',
        help_text='Credit consumed to pay for this booking',
    )
    credit_granted = models.BooleanField(default=False)
    credit_consumed = models.BooleanField(default=False)

    paid_cancellation = models.BooleanField(default=False)
    cancellation_order = models.ForeignKey(
        'orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='+',
    )

    objects = StudentBookingQuerySet.as_manager()

    class Meta:
        verbose_name = 'Student Booking'
        verbose_name_plural = 'Student Bookings'
        ordering = ['-date', '-start_time']

    def __str__(self):
        return f"{self.student.full_name}: {self.class_type} {self.date} {self.start_time:%H:%M} [{self.status}]"

    @property
    def has_credit(self):
        return (
            self.status == StudentBookingStatus.CANCELLED
            and self.credit_granted and not self.credit_consumed
        )

    def as_dict(self):
        return {
            'id': str(self.id),
            'slot_id': str(self.slot_id),
            'instructor_id': str(self.instructor_id),
            'instructor_name': self.instructor.name,
            'class_type': self.class_type,
            'date': self.date.isoformat(),
            'start': self.start_time.strftime('%H:%M'),
            'end': self.end_time.strftime('%H:%M'),
            'amount': str(self.amount),
            'status': self.status,
            'order_id': str(self.order_id) if self.order_id else None,
            'booked_at': self.booked_at.isoformat(),
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'redeemed': self.redeemed,
            'credit_available': self.has_credit,
            'paid_cancellation': self.paid_cancellation,
        }


# ── Slot Audit Log ────────────────────────────────────────────────────────────

class SlotStatusLog(UUIDModel):
    """Immutable audit trail of every status transition on a slot."""
    slot = models.ForeignKey(Slot, on_delete=models.CASCADE, related_name='status_logs')
    from_status = models.CharField(max_length=12, choices=SlotStatus.choices)
    to_status = models.CharField(max_length=12, choices=SlotStatus.choices)
    changed_by = models.CharField(max_length=80, help_text='student / instructor / admin / payment / system')
    reason = models.TextField(blank=True)
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Slot Status Log'
        verbose_name_plural = 'Slot Status Logs'
        ordering = ['changed_at']

    def __str__(self):
        return f"Slot {str(self.slot_id)[:8]}: {self.from_status} → {self.to_status}"
