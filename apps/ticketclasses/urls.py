from django.urls import path
from . import views

app_name = 'ticketclasses'

urlpatterns = [
    path('',                      views.class_list,          name='list'),
    path('request/',              views.request_seat,        name='request'),
    path('cancellation-policy/',  views.cancellation_policy, name='cancellation_policy'),
    path('cancel/',               views.cancel,              name='cancel'),
]
