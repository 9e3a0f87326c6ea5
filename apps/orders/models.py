"""
Order models.

An Order is the student-side checkout record: a snapshot of the cart (or a
single cancellation fee) plus its payment outcome. OrderAppointment rows tie
the order to the slots and class enrollments it pays for, so the order's
status and the instructor-side slot status can be kept in step.
"""
from django.db import models
from apps.core.models import UUIDModel, TimestampedModel
from apps.students.models import Student


class OrderType(models.TextChoices):
    DRIVING_TEST           = 'driving_test',           'Driving Test'
    DRIVING_LESSON_PACKAGE = 'driving_lesson_package', 'Driving Lesson Package'
    TICKET_CLASS           = 'ticket_class',           'Ticket Class'
    CANCEL_DRIVING_TEST    = 'cancel_driving_test',    'Driving Test Cancellation'
    CANCEL_DRIVING_LESSON  = 'cancel_driving_lesson',  'Driving Lesson Cancellation'


CANCELLATION_ORDER_TYPES = (OrderType.CANCEL_DRIVING_TEST, OrderType.CANCEL_DRIVING_LESSON)


class OrderPaymentStatus(models.TextChoices):
    PENDING   = 'pending',   'Pending'
    COMPLETED = 'completed', 'Completed'
    FAILED    = 'failed',    'Failed'
    CANCELLED = 'cancelled', 'Cancelled'


class OrderStatus(models.TextChoices):
    PENDING   = 'pending',   'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class Order(UUIDModel, TimestampedModel):
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name='orders')
    order_number = models.PositiveIntegerField(unique=True)
    order_type = models.CharField(max_length=30, choices=OrderType.choices)
    items = models.JSONField(default=list, blank=True, help_text='Cart snapshot at checkout')
    total = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    payment_method = models.CharField(max_length=20, default='online')
    payment_status = models.CharField(
        max_length=10, choices=OrderPaymentStatus.choices,
        default=OrderPaymentStatus.PENDING, db_index=True,
    )
    status = models.CharField(
        max_length=10, choices=OrderStatus.choices,
        default=OrderStatus.PENDING, db_index=True,
    )
    payment_reference = models.CharField(max_length=120, blank=True)

    # Lesson packages
    package_name = models.CharField(max_length=120, blank=True)
    package_hours = models.PositiveSmallIntegerField(null=True, blank=True)

    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = 'Order'
        verbose_name_plural = 'Orders'
        ordering = ['-created_at']

    def __str__(self):
        return f"Order #{self.order_number} ({self.get_order_type_display()}) [{self.status}]"

    @property
    def is_cancellation(self):
        return self.order_type in CANCELLATION_ORDER_TYPES

    @property
    def is_pending(self):
        return self.status == OrderStatus.PENDING

    def as_dict(self):
        return {
            'id': str(self.id),
            'order_number': self.order_number,
            'order_type': self.order_type,
            'student_id': str(self.student_id),
            'items': self.items,
            'total': str(self.total),
            'payment_method': self.payment_method,
            'payment_status': self.payment_status,
            'status': self.status,
            'payment_reference': self.payment_reference,
            'package_name': self.package_name,
            'package_hours': self.package_hours,
            'created_at': self.created_at.isoformat(),
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'appointments': [a.as_dict() for a in self.appointments.all()],
        }


class AppointmentStatus(models.TextChoices):
    PENDING   = 'pending',   'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    CANCELLED = 'cancelled', 'Cancelled'


class OrderAppointment(UUIDModel, TimestampedModel):
    """One slot or class seat an order pays for."""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='appointments')
    slot = models.ForeignKey(
        'bookings.Slot', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='order_appointments',
    )
    enrollment = models.ForeignKey(
        'ticketclasses.Enrollment', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='order_appointments',
    )
    class_type = models.CharField(max_length=20)
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField(null=True, blank=True)
    amount = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    status = models.CharField(
        max_length=10, choices=AppointmentStatus.choices, default=AppointmentStatus.PENDING,
    )

    class Meta:
        ordering = ['date', 'start_time']

    def __str__(self):
        return f"#{self.order.order_number} {self.class_type} {self.date} {self.start_time:%H:%M}"

    def as_dict(self):
        return {
            'id': str(self.id),
            'slot_id': str(self.slot_id) if self.slot_id else None,
            'enrollment_id': str(self.enrollment_id) if self.enrollment_id else None,
            'class_type': self.class_type,
            'date': self.date.isoformat(),
            'start': self.start_time.strftime('%H:%M'),
            'end': self.end_time.strftime('%H:%M') if self.end_time else None,
            'amount': str(self.amount),
            'status': self.status,
        }
