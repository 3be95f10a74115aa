"""Serializers for transforming domain models to API responses."""

from rest_framework import serializers

from entitlements.domain.results import SubscriptionCheck


class TicketSerializer(serializers.Serializer):
    """Serializer for Ticket domain model."""

    id = serializers.UUIDField(source="id.value")
    event_id = serializers.UUIDField()
    tier_id = serializers.UUIDField()
    purchaser_name = serializers.CharField(allow_null=True)
    purchaser_email = serializers.EmailField(allow_null=True)
    is_validated = serializers.BooleanField()
    validated_at = serializers.DateTimeField(allow_null=True)
    created_at = serializers.DateTimeField()


class SubscriptionSerializer(serializers.Serializer):
    """Serializer for Subscription domain model."""

    id = serializers.UUIDField(source="id.value")
    subscription_type_id = serializers.UUIDField()
    purchaser_name = serializers.CharField(allow_null=True)
    purchaser_email = serializers.EmailField(allow_null=True)
    valid_from = serializers.DateTimeField()
    valid_to = serializers.DateTimeField()
    gateway_subscription_id = serializers.CharField(allow_null=True)
    payment_status = serializers.CharField(source="status.value")


class SubscriptionCheckSerializer(serializers.Serializer):
    """Flattens a subscription and its computed window status."""

    def to_representation(self, instance: SubscriptionCheck) -> dict:
        data = dict(SubscriptionSerializer(instance.subscription).data)
        data["status"] = instance.status.public_status
        data["message"] = instance.message
        return data


class QrValidationRequestSerializer(serializers.Serializer):
    """Request body for QR code validation."""

    qrData = serializers.CharField(allow_blank=False, trim_whitespace=False)
