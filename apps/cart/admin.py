from django.contrib import admin
from .models import CartItem


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ['student', 'class_type', 'amount', 'slot', 'enrollment', 'created_at']
    list_filter = ['class_type']
    search_fields = ['student__email', 'student__last_name']
    readonly_fields = ['id', 'slot', 'enrollment', 'created_at', 'updated_at']
