from __future__ import annotations

from django.contrib import admin

from . import models
from .status_map import describe


class TrackedEventInline(admin.TabularInline):
    model = models.TrackedEvent
    extra = 0
    can_delete = False
    fields = ("when", "status", "what", "where", "notes", "data_provider", "event_id")
    readonly_fields = fields
    ordering = ("occurred_at",)


@admin.register(models.TrackedEntity)
class TrackedEntityAdmin(admin.ModelAdmin):
    list_display = ("tracking_id", "carrier", "completed", "ingestion_mode", "last_status", "updated_at")
    list_filter = ("carrier", "completed", "ingestion_mode")
    search_fields = ("tracking_id", "tracking_num", "uuid")
    readonly_fields = ("id", "uuid", "tracking_id", "carrier", "tracking_num", "creation_time", "created_at", "updated_at")
    inlines = [TrackedEventInline]

    @admin.display(description="Last status")
    def last_status(self, obj):
        last = obj.events.order_by("-occurred_at").first()
        if last is None:
            return "-"
        return f"{last.status} {describe(last.status)}"


@admin.register(models.TrackedEvent)
class TrackedEventAdmin(admin.ModelAdmin):
    list_display = ("entity", "status", "what", "when", "where", "data_provider")
    list_filter = ("status", "operator_code", "data_provider")
    search_fields = ("event_id", "tracking_num", "entity__tracking_id")
    raw_id_fields = ("entity",)
