from django.contrib import admin

from .models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('site_id', 'base_url', 'name', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('site_id', 'base_url', 'name')
