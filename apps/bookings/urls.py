"""
Booking API URLs.

  /api/bookings/reserve-pending/                 Hold a slot as pending
  /api/bookings/cancellation-policy/             Quote the cancellation fee / credit
  /api/bookings/cancel/                          Cancel (free) or report the fee due
  /api/bookings/redeem/                          Book with a cancellation credit
  /api/bookings/students/<uuid>/                 Student's bookings
  /api/bookings/students/<uuid>/credits/         Student's unconsumed credits
  /api/bookings/schedule-updates/                Poll for schedule changes
"""
from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    path('reserve-pending/',                  views.reserve_pending,     name='reserve_pending'),
    path('cancellation-policy/',              views.cancellation_policy, name='cancellation_policy'),
    path('cancel/',                           views.cancel,              name='cancel'),
    path('redeem/',                           views.redeem,              name='redeem'),

    path('students/<uuid:student_id>/',         views.student_bookings, name='student_bookings'),
    path('students/<uuid:student_id>/credits/', views.student_credits,  name='student_credits'),

    path('schedule-updates/',                 views.schedule_updates,    name='schedule_updates'),
]
