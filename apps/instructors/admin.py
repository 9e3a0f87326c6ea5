from django.contrib import admin
from apps.bookings.models import Slot
from .models import Instructor


class SlotInline(admin.TabularInline):
    model = Slot
    fk_name = 'instructor'
    extra = 0
    fields = ['class_type', 'date', 'start_time', 'end_time', 'status', 'student', 'amount', 'paid']
    readonly_fields = ['student']
    ordering = ['-date', 'start_time']
    show_change_link = True


@admin.register(Instructor)
class InstructorAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'phone', 'teaches_driving_test', 'teaches_driving_lesson', 'is_active', 'deleted_at']
    list_filter = ['locations', 'is_active', 'teaches_driving_test', 'teaches_driving_lesson']
    search_fields = ['name', 'email', 'phone']
    list_editable = ['is_active']
    filter_horizontal = ['locations']
    readonly_fields = ['id', 'created_at', 'updated_at', 'deleted_at']
    inlines = [SlotInline]
    fieldsets = (
        ('Instructor Info', {'fields': ('id', 'name', 'email', 'phone', 'photo_url', 'bio', 'years_experience')}),
        ('Teaching', {'fields': ('locations', 'teaches_driving_test', 'teaches_driving_lesson')}),
        ('Status', {'fields': ('is_active',)}),
        ('Audit', {'fields': ('created_at', 'updated_at', 'deleted_at'), 'classes': ('collapse',)}),
    )
