from django.contrib import admin

from entitlements.models import ProcessedEvent, Subscription, Ticket


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ["id", "event_id", "purchaser_name", "is_validated", "validated_at"]
    list_filter = ["is_validated"]
    search_fields = ["id", "purchaser_name", "purchaser_email"]
    readonly_fields = ["is_validated", "validated_at", "created_at"]


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ["id", "purchaser_name", "valid_from", "valid_to", "status"]
    list_filter = ["status"]
    search_fields = ["id", "purchaser_email", "gateway_subscription_id"]


@admin.register(ProcessedEvent)
class ProcessedEventAdmin(admin.ModelAdmin):
    list_display = ["event_id", "type", "received_at"]
    search_fields = ["event_id"]
    readonly_fields = ["event_id", "type", "received_at"]
