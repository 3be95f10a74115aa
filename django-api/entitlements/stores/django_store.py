"""Django ORM implementation of the EntitlementStore."""

import logging
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from typing import ParamSpec, TypeVar

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import DateTimeField, F, Value
from django.db.models.functions import Greatest

from entitlements import models
from entitlements.domain import (
    ProcessedEventMarker,
    Subscription,
    SubscriptionId,
    SubscriptionStatus,
    Ticket,
    TicketId,
    ValidityWindow,
)
from entitlements.domain.errors import StoreUnavailableError
from entitlements.stores.interfaces import EntitlementStore

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def _store_operation(func: Callable[P, R]) -> Callable[P, R]:
    """Translate database failures into StoreUnavailableError."""

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.error(
                "Entitlement store operation failed",
                extra={"operation": func.__name__, "error": str(exc)},
            )
            raise StoreUnavailableError(func.__name__) from exc

    return wrapper


class DjangoEntitlementStore(EntitlementStore):
    """PostgreSQL-backed entitlement store using Django ORM."""

    @_store_operation
    def get_ticket(self, ticket_id: TicketId) -> Ticket | None:
        row = models.Ticket.objects.filter(pk=ticket_id.value).first()
        return _ticket_to_domain(row) if row else None

    @_store_operation
    def mark_ticket_validated(
        self, ticket_id: TicketId, validated_at: datetime
    ) -> Ticket | None:
        updated = models.Ticket.objects.filter(
            pk=ticket_id.value, is_validated=False
        ).update(is_validated=True, validated_at=validated_at)
        if not updated:
            return None
        return _ticket_to_domain(models.Ticket.objects.get(pk=ticket_id.value))

    @_store_operation
    def get_subscription(self, subscription_id: SubscriptionId) -> Subscription | None:
        row = models.Subscription.objects.filter(pk=subscription_id.value).first()
        return _subscription_to_domain(row) if row else None

    @_store_operation
    def find_subscription_by_gateway_reference(
        self, reference: str
    ) -> Subscription | None:
        row = models.Subscription.objects.filter(
            gateway_subscription_id=reference
        ).first()
        return _subscription_to_domain(row) if row else None

    @_store_operation
    def activate_subscription(self, subscription_id: SubscriptionId) -> bool:
        updated = (
            models.Subscription.objects.filter(pk=subscription_id.value)
            .exclude(
                status__in=[
                    models.Subscription.Status.ACTIVE,
                    models.Subscription.Status.CANCELLED,
                ]
            )
            .update(status=models.Subscription.Status.ACTIVE)
        )
        return updated == 1

    @_store_operation
    def update_subscription_terms(
        self,
        subscription_id: SubscriptionId,
        status: SubscriptionStatus,
        valid_to: datetime | None,
    ) -> Subscription | None:
        changes = {"status": status.value}
        if valid_to is not None:
            changes["valid_to"] = Greatest(
                F("valid_from"), Value(valid_to, output_field=DateTimeField())
            )
        updated = (
            models.Subscription.objects.filter(pk=subscription_id.value)
            .exclude(status=models.Subscription.Status.CANCELLED)
            .update(**changes)
        )
        if not updated:
            return None
        return _subscription_to_domain(
            models.Subscription.objects.get(pk=subscription_id.value)
        )

    @_store_operation
    def record_processed_event(self, marker: ProcessedEventMarker) -> bool:
        try:
            with transaction.atomic():
                models.ProcessedEvent.objects.create(
                    event_id=marker.event_id,
                    type=marker.type,
                    received_at=marker.received_at,
                )
        except IntegrityError:
            return False
        return True

    @_store_operation
    def forget_processed_event(self, event_id: str) -> None:
        models.ProcessedEvent.objects.filter(pk=event_id).delete()


def _ticket_to_domain(row: models.Ticket) -> Ticket:
    return Ticket(
        id=TicketId(value=row.id),
        event_id=row.event_id,
        tier_id=row.tier_id,
        purchaser_name=row.purchaser_name,
        purchaser_email=row.purchaser_email,
        is_validated=row.is_validated,
        validated_at=row.validated_at,
        created_at=row.created_at,
    )


def _subscription_to_domain(row: models.Subscription) -> Subscription:
    return Subscription(
        id=SubscriptionId(value=row.id),
        subscription_type_id=row.subscription_type_id,
        purchaser_name=row.purchaser_name,
        purchaser_email=row.purchaser_email,
        window=ValidityWindow(valid_from=row.valid_from, valid_to=row.valid_to),
        gateway_subscription_id=row.gateway_subscription_id,
        status=SubscriptionStatus(row.status),
    )
