"""
URL configuration for the driving-school booking backend.
"""
from django.contrib import admin
from django.conf import settings
from django.urls import path, include

urlpatterns = [
    path(settings.ADMIN_URL, admin.site.urls),
    path('api/locations/', include('apps.locations.urls', namespace='locations')),
    path('api/instructors/', include('apps.instructors.urls', namespace='instructors')),
    path('api/bookings/', include('apps.bookings.urls', namespace='bookings')),
    path('api/cart/', include('apps.cart.urls', namespace='cart')),
    path('api/orders/', include('apps.orders.urls', namespace='orders')),
    path('api/ticket-classes/', include('apps.ticketclasses.urls', namespace='ticketclasses')),
    path('dashboard/', include('apps.dashboard.urls', namespace='dashboard')),
]

if settings.DEBUG and 'debug_toolbar' in settings.INSTALLED_APPS:
    urlpatterns = [path('__debug__/', include('debug_toolbar.urls'))] + urlpatterns
