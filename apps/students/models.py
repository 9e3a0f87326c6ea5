"""
Student model — the customer who books tests, lessons and classes.
Email is the identity key; phone is stored normalised so staff can search
for it regardless of how it was typed:
  (404) 555-0134   →  4045550134
  +1 404-555-0134  →  4045550134
  1.404.555.0134   →  4045550134
"""
import re
from django.db import models
from apps.core.models import UUIDModel, TimestampedModel


def normalize_phone(raw: str) -> str:
    """
    Normalise a US phone number to exactly 10 digits.

    Raises ValueError if the result is not 10 digits.
    """
    digits = re.sub(r'\D', '', raw or '')

    if len(digits) == 11 and digits.startswith('1'):
        digits = digits[1:]                    # strip country code

    if len(digits) != 10:
        raise ValueError(
            f"Cannot normalise phone number '{raw}': "
            f"expected 10 digits after normalisation, got {len(digits)}."
        )
    return digits


class Student(UUIDModel, TimestampedModel):
    first_name = models.CharField(max_length=80)
    middle_name = models.CharField(max_length=80, blank=True)
    last_name = models.CharField(max_length=80)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True, db_index=True)
    has_license = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = 'Student'
        verbose_name_plural = 'Students'
        ordering = ['last_name', 'first_name']

    def __str__(self):
        return f"{self.full_name} <{self.email}>"

    @property
    def full_name(self):
        parts = [self.first_name]
        if self.middle_name and self.middle_name.strip():
            parts.append(self.middle_name.strip())
        parts.append(self.last_name)
        return ' '.join(p for p in parts if p)

    @classmethod
    def get_or_create_by_email(cls, email, first_name, last_name, phone='', middle_name=''):
        """
        Lookup by case-insensitive email. Phone is normalised when given.
        Raises ValueError if phone cannot be normalised.
        """
        email = email.strip().lower()
        phone = normalize_phone(phone) if phone else ''
        student, created = cls.objects.get_or_create(
            email=email,
            defaults={
                'first_name': first_name,
                'middle_name': middle_name,
                'last_name': last_name,
                'phone': phone,
            },
        )
        if not created and phone and student.phone != phone:
            student.phone = phone
            student.save(update_fields=['phone', 'updated_at'])
        return student, created

    def as_dict(self):
        return {
            'id': str(self.id),
            'name': self.full_name,
            'email': self.email,
            'phone': self.phone,
        }
