from django.contrib import admin
from .models import Slot, SlotStatusLog, StudentBooking


class SlotStatusLogInline(admin.TabularInline):
    model = SlotStatusLog
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'changed_by', 'reason', 'changed_at']
    can_delete = False


@admin.register(Slot)
class SlotAdmin(admin.ModelAdmin):
    list_display = [
        'short_id', 'instructor', 'class_type', 'date', 'start_time', 'end_time',
        'status', 'student_name', 'amount', 'paid', 'payment_method',
    ]
    list_filter = ['status', 'class_type', 'paid', 'payment_method', 'instructor', 'date']
    search_fields = ['student_name', 'student__email', 'instructor__name', 'payment_reference']
    # status only moves through the booking engine
    readonly_fields = [
        'id', 'status', 'student', 'order', 'replacement',
        'reserved_at', 'confirmed_at', 'created_at', 'updated_at',
    ]
    date_hierarchy = 'date'
    inlines = [SlotStatusLogInline]
    fieldsets = (
        ('Slot', {'fields': ('id', 'instructor', 'class_type', 'date', 'start_time', 'end_time', 'amount')}),
        ('Status', {'fields': ('status', 'student', 'student_name', 'paid', 'payment_method', 'payment_reference', 'order')}),
        ('Lesson', {'fields': ('pickup_location', 'dropoff_location', 'package_reference')}),
        ('Audit', {'fields': ('replacement', 'reserved_at', 'confirmed_at', 'created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    def short_id(self, obj):
        return str(obj.id)[:8]
    short_id.short_description = 'ID'


@admin.register(StudentBooking)
class StudentBookingAdmin(admin.ModelAdmin):
    list_display = [
        'student', 'instructor', 'class_type', 'date', 'start_time', 'status',
        'amount', 'redeemed', 'credit_granted', 'credit_consumed', 'paid_cancellation',
    ]
    list_filter = ['status', 'class_type', 'redeemed', 'credit_granted', 'credit_consumed', 'paid_cancellation']
    search_fields = ['student__email', 'student__last_name', 'instructor__name']
    readonly_fields = [
        'id', 'slot', 'order', 'redeemed_from', 'cancellation_order',
        'booked_at', 'cancelled_at', 'created_at', 'updated_at',
    ]
    date_hierarchy = 'date'


@admin.register(SlotStatusLog)
class SlotStatusLogAdmin(admin.ModelAdmin):
    list_display = ['slot', 'from_status', 'to_status', 'changed_by', 'changed_at']
    readonly_fields = ['id', 'slot', 'from_status', 'to_status', 'changed_by', 'reason', 'changed_at']
    search_fields = ['slot__student_name', 'slot__instructor__name']
