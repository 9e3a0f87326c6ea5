from django.urls import path
from . import views

app_name = 'instructors'

urlpatterns = [
    path('',                                   views.instructor_list,     name='list'),
    path('<uuid:instructor_id>/schedule/',     views.instructor_schedule, name='schedule'),
]
