from django.urls import path
from . import views

app_name = 'cart'

urlpatterns = [
    path('add/',                          views.add_item,    name='add'),
    path('clear/',                        views.clear,       name='clear'),
    path('items/<uuid:item_id>/remove/',  views.remove_item, name='remove'),
    path('<uuid:student_id>/',            views.cart_status, name='status'),
]
