"""Admin configuration for integrations app."""

from django.contrib import admin

from apps.integrations.models import Delivery, ExecutionLog, FieldMapping, Integration


class FieldMappingInline(admin.TabularInline):
    model = FieldMapping
    extra = 0
    ordering = ["field_order"]
    fields = [
        "field_order",
        "source_field",
        "target_field",
        "transformation",
        "default_value",
        "is_required",
    ]


@admin.register(Integration)
class IntegrationAdmin(admin.ModelAdmin):
    """Admin for Integration model."""

    list_display = [
        "name",
        "organization",
        "url",
        "method",
        "is_active",
        "last_execution_status",
        "consecutive_failures",
        "created_at",
    ]
    list_filter = ["is_active", "method", "last_execution_status"]
    search_fields = ["name", "url", "organization__name"]
    readonly_fields = [
        "id",
        "last_execution_status",
        "last_execution_at",
        "consecutive_failures",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    inlines = [FieldMappingInline]


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    """Admin for Delivery model."""

    list_display = [
        "id",
        "integration",
        "application_id",
        "trigger",
        "status",
        "attempts_made",
        "max_attempts",
        "next_attempt_at",
        "created_at",
    ]
    list_filter = ["status", "trigger", "is_test"]
    search_fields = ["id", "application_id", "integration__name"]
    readonly_fields = [
        "id",
        "payload",
        "attempts_made",
        "max_attempts",
        "claimed_until",
        "created_at",
        "updated_at",
        "completed_at",
    ]
    ordering = ["-created_at"]


@admin.register(ExecutionLog)
class ExecutionLogAdmin(admin.ModelAdmin):
    """Admin for ExecutionLog model. Entries are read-only."""

    list_display = [
        "id",
        "integration",
        "application_id",
        "status",
        "error_type",
        "response_status",
        "retry_count",
        "execution_time_ms",
        "created_at",
    ]
    list_filter = ["status", "error_type"]
    search_fields = ["id", "application_id", "integration__name", "delivery__id"]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
