from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    path('create/',                      views.create_order,              name='create'),
    path('cancellation/',                views.create_cancellation_order, name='cancellation'),
    path('cancel/',                      views.cancel_order,              name='cancel'),
    path('payment-webhook/',             views.payment_webhook,           name='payment_webhook'),
    path('students/<uuid:student_id>/',  views.student_orders,            name='student_orders'),
    path('<uuid:order_id>/',             views.order_detail,              name='detail'),
]
