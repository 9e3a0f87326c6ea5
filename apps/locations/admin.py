from django.contrib import admin
from .models import Location


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ['name', 'city', 'zip_code', 'phone', 'is_active', 'deleted_at']
    list_filter = ['is_active', 'city']
    search_fields = ['name', 'city', 'zip_code', 'phone']
    list_editable = ['is_active']
    prepopulated_fields = {'slug': ('name',)}
    readonly_fields = ['id', 'created_at', 'updated_at', 'deleted_at']
    fieldsets = (
        ('Location', {'fields': ('id', 'name', 'slug', 'address', 'city', 'zip_code', 'phone', 'email', 'description')}),
        ('Status', {'fields': ('is_active',)}),
        ('Audit', {'fields': ('created_at', 'updated_at', 'deleted_at'), 'classes': ('collapse',)}),
    )
