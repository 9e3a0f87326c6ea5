"""Dashboard forms:
 - SlotCreateForm: one slot or a run of back-to-back slots
 - SlotStatusForm: instructor-side status change
"""
from datetime import date as date_type, datetime

from django import forms
from django.utils import timezone

from apps.bookings.models import ClassType, SlotStatus
from apps.instructors.models import Instructor

MAX_CONSECUTIVE_SLOTS = 16


class SlotCreateForm(forms.Form):
    instructor = forms.ModelChoiceField(queryset=Instructor.objects.filter(is_active=True))
    class_type = forms.ChoiceField(choices=ClassType.choices)
    date = forms.DateField(input_formats=['%Y-%m-%d'])
    start_time = forms.TimeField(input_formats=['%H:%M', '%H:%M:%S'])
    end_time = forms.TimeField(input_formats=['%H:%M', '%H:%M:%S'])
    amount = forms.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)
    count = forms.IntegerField(
        min_value=1, max_value=MAX_CONSECUTIVE_SLOTS, required=False,
        help_text='Number of consecutive slots of the same length.',
    )

    def clean_date(self):
        value = self.cleaned_data['date']
        if value < timezone.localdate():
            raise forms.ValidationError('Cannot add slots in the past.')
        return value

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get('start_time'), cleaned_data.get('end_time')
        instructor, class_type = cleaned_data.get('instructor'), cleaned_data.get('class_type')

        if start and end:
            if end <= start:
                self.add_error('end_time', 'End time must be after start time.')
            else:
                count = cleaned_data.get('count') or 1
                length = datetime.combine(date_type.min, end) - datetime.combine(date_type.min, start)
                last_end = datetime.combine(date_type.min, start) + length * count
                if last_end.date() != date_type.min:
                    self.add_error('count', 'Consecutive slots must end on the same day.')

        if instructor and class_type and not instructor.teaches(class_type):
            self.add_error('class_type', f'{instructor.name} does not teach this class type.')

        return cleaned_data

    def intervals(self):
        """(start, end) time pairs for every slot the form describes."""
        start = datetime.combine(date_type.min, self.cleaned_data['start_time'])
        length = datetime.combine(date_type.min, self.cleaned_data['end_time']) - start
        count = self.cleaned_data.get('count') or 1
        return [
            ((start + length * i).time(), (start + length * (i + 1)).time())
            for i in range(count)
        ]


class SlotStatusForm(forms.Form):
    status = forms.ChoiceField(choices=SlotStatus.choices)
    payment_reference = forms.CharField(max_length=120, required=False)
