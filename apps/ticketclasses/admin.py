from django.contrib import admin
from .models import Enrollment, TicketClass


class EnrollmentInline(admin.TabularInline):
    model = Enrollment
    extra = 0
    fields = ['student', 'status', 'order', 'enrolled_at', 'cancelled_at']
    readonly_fields = ['student', 'order', 'enrolled_at', 'cancelled_at']
    can_delete = False


@admin.register(TicketClass)
class TicketClassAdmin(admin.ModelAdmin):
    list_display = ['title', 'class_type', 'location', 'instructor', 'date', 'hour', 'capacity', 'price']
    list_filter = ['class_type', 'location', 'date']
    search_fields = ['title', 'location__name', 'instructor__name']
    readonly_fields = ['id', 'created_at', 'updated_at', 'deleted_at']
    date_hierarchy = 'date'
    inlines = [EnrollmentInline]


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ['student', 'ticket_class', 'status', 'enrolled_at', 'cancelled_at']
    list_filter = ['status']
    search_fields = ['student__email', 'student__last_name', 'ticket_class__title']
    readonly_fields = ['id', 'order', 'enrolled_at', 'cancelled_at', 'created_at', 'updated_at']
