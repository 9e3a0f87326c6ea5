"""
Classroom classes (DATE, BDI, ADI) sold per seat.
"""
from datetime import datetime

from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel, UUIDModel, TimestampedModel
from apps.instructors.models import Instructor
from apps.locations.models import Location
from apps.students.models import Student


class TicketClassType(models.TextChoices):
    DATE = 'date', 'D.A.T.E.'
    BDI  = 'bdi',  'Basic Driver Improvement'
    ADI  = 'adi',  'Advanced Driver Improvement'


class TicketClass(BaseModel):
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='ticket_classes')
    instructor = models.ForeignKey(
        Instructor, on_delete=models.SET_NULL, null=True, blank=True, related_name='ticket_classes',
    )
    title = models.CharField(max_length=150)
    class_type = models.CharField(max_length=10, choices=TicketClassType.choices)
    date = models.DateField(db_index=True)
    hour = models.TimeField()
    duration_hours = models.PositiveSmallIntegerField(default=4)
    capacity = models.PositiveSmallIntegerField(default=30)
    price = models.DecimalField(max_digits=8, decimal_places=2, default=0)

    class Meta:
        verbose_name = 'Ticket Class'
        verbose_name_plural = 'Ticket Classes'
        ordering = ['date', 'hour']

    def __str__(self):
        return f"{self.title} — {self.date} {self.hour:%H:%M}"

    @property
    def starts_at(self):
        naive = datetime.combine(self.date, self.hour)
        return timezone.make_aware(naive, timezone.get_current_timezone())

    @property
    def seats_taken(self):
        return self.enrollments.exclude(status=EnrollmentStatus.CANCELLED).count()

    @property
    def available_spots(self):
        return max(self.capacity - self.seats_taken, 0)

    def as_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'class_type': self.class_type,
            'location_id': str(self.location_id),
            'instructor_id': str(self.instructor_id) if self.instructor_id else None,
            'date': self.date.isoformat(),
            'hour': self.hour.strftime('%H:%M'),
            'duration_hours': self.duration_hours,
            'capacity': self.capacity,
            'available_spots': self.available_spots,
            'price': str(self.price),
        }


class EnrollmentStatus(models.TextChoices):
    PENDING   = 'pending',   'Pending'
    ENROLLED  = 'enrolled',  'Enrolled'
    CANCELLED = 'cancelled', 'Cancelled'


class Enrollment(UUIDModel, TimestampedModel):
    ticket_class = models.ForeignKey(TicketClass, on_delete=models.PROTECT, related_name='enrollments')
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name='enrollments')
    status = models.CharField(
        max_length=10, choices=EnrollmentStatus.choices,
        default=EnrollmentStatus.PENDING, db_index=True,
    )
    order = models.ForeignKey(
        'orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='enrollments',
    )
    enrolled_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['ticket_class', 'student'],
                condition=~models.Q(status='cancelled'),
                name='uq_live_enrollment',
            ),
        ]

    def __str__(self):
        return f"{self.student.full_name} in {self.ticket_class.title} [{self.status}]"

    def as_dict(self):
        return {
            'id': str(self.id),
            'ticket_class_id': str(self.ticket_class_id),
            'student_id': str(self.student_id),
            'status': self.status,
            'order_id': str(self.order_id) if self.order_id else None,
            'enrolled_at': self.enrolled_at.isoformat() if self.enrolled_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
