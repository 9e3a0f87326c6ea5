"""
Cart models.

A cart item reserves something for the student until checkout: a slot held
as pending, or a pending ticket-class enrollment. Items are removed when the
order is paid or cancelled.
"""
from django.db import models
from apps.core.models import UUIDModel, TimestampedModel
from apps.students.models import Student


class CartItem(UUIDModel, TimestampedModel):
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='cart_items')
    slot = models.OneToOneField(
        'bookings.Slot', on_delete=models.CASCADE, null=True, blank=True, related_name='cart_item',
    )
    enrollment = models.OneToOneField(
        'ticketclasses.Enrollment', on_delete=models.CASCADE, null=True, blank=True,
        related_name='cart_item',
    )
    class_type = models.CharField(max_length=20)
    amount = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    pickup_location = models.CharField(max_length=255, blank=True)
    dropoff_location = models.CharField(max_length=255, blank=True)
    package_reference = models.CharField(max_length=64, blank=True)

    class Meta:
        verbose_name = 'Cart Item'
        verbose_name_plural = 'Cart Items'
        ordering = ['created_at']
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(slot__isnull=False, enrollment__isnull=True)
                    | models.Q(slot__isnull=True, enrollment__isnull=False)
                ),
                name='ck_cart_item_slot_xor_enrollment',
            ),
        ]

    def __str__(self):
        return f"{self.student.full_name}: {self.class_type} ({self.amount})"

    def as_dict(self):
        data = {
            'id': str(self.id),
            'class_type': self.class_type,
            'amount': str(self.amount),
            'slot_id': str(self.slot_id) if self.slot_id else None,
            'enrollment_id': str(self.enrollment_id) if self.enrollment_id else None,
            'pickup_location': self.pickup_location,
            'dropoff_location': self.dropoff_location,
            'package_reference': self.package_reference,
        }
        if self.slot_id:
            slot = self.slot
            data.update({
                'instructor_id': str(slot.instructor_id),
                'date': slot.date.isoformat(),
                'start': slot.start_time.strftime('%H:%M'),
                'end': slot.end_time.strftime('%H:%M'),
            })
        elif self.enrollment_id:
            ticket_class = self.enrollment.ticket_class
            data.update({
                'ticket_class_id': str(ticket_class.id),
                'title': ticket_class.title,
                'date': ticket_class.date.isoformat(),
                'start': ticket_class.hour.strftime('%H:%M'),
            })
        return data
