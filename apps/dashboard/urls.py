from django.urls import path
from . import views

app_name = 'dashboard'

urlpatterns = [
    # ── Auth ──────────────────────────────────────────────────────────────
    path('csrf/',    views.csrf,             name='csrf'),
    path('login/',   views.dashboard_login,  name='login'),
    path('logout/',  views.dashboard_logout, name='logout'),

    # ── Schedule ──────────────────────────────────────────────────────────
    path('upcoming/',                               views.upcoming,           name='upcoming'),
    path('instructors/<uuid:instructor_id>/schedule/', views.schedule,        name='schedule'),

    # ── Slots ─────────────────────────────────────────────────────────────
    path('slots/',                                  views.slot_create,        name='slot_create'),
    path('slots/<uuid:slot_id>/delete/',            views.slot_delete,        name='slot_delete'),
    path('slots/<uuid:slot_id>/status/',            views.slot_update_status, name='slot_status'),
]
