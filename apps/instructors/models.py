"""
Instructor model. An instructor teaches at one or more locations and owns
the slots students book for driving tests and driving lessons.
"""
from django.db import models
from apps.core.models import BaseModel
from apps.locations.models import Location


class Instructor(BaseModel):
    locations = models.ManyToManyField(
        Location,
        related_name='instructors',
        blank=True,
    )
    name = models.CharField(max_length=120)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    photo_url = models.URLField(blank=True)
    bio = models.TextField(blank=True)
    years_experience = models.PositiveIntegerField(default=0)

    teaches_driving_test = models.BooleanField(default=True)
    teaches_driving_lesson = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        verbose_name = 'Instructor'
        verbose_name_plural = 'Instructors'
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def first_name(self):
        return self.name.split()[0] if self.name else ""

    def teaches(self, class_type: str) -> bool:
        return {
            'driving_test': self.teaches_driving_test,
            'driving_lesson': self.teaches_driving_lesson,
        }.get(class_type, False)

    def as_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'photo_url': self.photo_url,
            'bio': self.bio,
            'years_experience': self.years_experience,
            'teaches_driving_test': self.teaches_driving_test,
            'teaches_driving_lesson': self.teaches_driving_lesson,
            'locations': [str(loc.id) for loc in self.locations.all()],
        }
