from django.contrib import admin
from .models import CachedRecord


@admin.register(CachedRecord)
class CachedRecordAdmin(admin.ModelAdmin):
    list_display = ['key', 'namespace', 'version', 'needs_sync', 'pending_create', 'last_accessed_at']
    list_filter = ['namespace', 'needs_sync', 'pending_create']
    search_fields = ['key']
    ordering = ['namespace', 'key']
    readonly_fields = ['version', 'created_at']
