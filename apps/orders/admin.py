from django.contrib import admin
from .models import Order, OrderAppointment


class OrderAppointmentInline(admin.TabularInline):
    model = OrderAppointment
    extra = 0
    fields = ['class_type', 'date', 'start_time', 'end_time', 'amount', 'status', 'slot', 'enrollment']
    readonly_fields = ['slot', 'enrollment']
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        'order_number', 'student', 'order_type', 'total', 'payment_method',
        'payment_status', 'status', 'created_at',
    ]
    list_filter = ['order_type', 'payment_status', 'status', 'payment_method']
    search_fields = ['order_number', 'student__email', 'student__last_name', 'payment_reference']
    readonly_fields = ['id', 'order_number', 'items', 'created_at', 'updated_at', 'cancelled_at']
    inlines = [OrderAppointmentInline]
    fieldsets = (
        ('Order', {'fields': ('id', 'order_number', 'student', 'order_type', 'items', 'total')}),
        ('Payment', {'fields': ('payment_method', 'payment_status', 'payment_reference')}),
        ('Status', {'fields': ('status', 'cancelled_at')}),
        ('Package', {'fields': ('package_name', 'package_hours'), 'classes': ('collapse',)}),
        ('Audit', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )
