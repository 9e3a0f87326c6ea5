"""
Location model — a physical office / test site of the driving school.
"""
from django.db import models
from apps.core.models import BaseModel


class Location(BaseModel):
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True)
    address = models.TextField()
    city = models.CharField(max_length=80)
    zip_code = models.CharField(max_length=10, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    description = models.TextField(blank=True)

    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        verbose_name = 'Location'
        verbose_name_plural = 'Locations'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.city})"

    def as_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'slug': self.slug,
            'address': self.address,
            'city': self.city,
            'zip_code': self.zip_code,
            'phone': self.phone,
            'email': self.email,
        }
