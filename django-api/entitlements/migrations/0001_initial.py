import uuid

import django.db.models.expressions
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ProcessedEvent",
            fields=[
                ("event_id", models.CharField(max_length=255, primary_key=True, serialize=False)),
                ("type", models.CharField(max_length=255)),
                ("received_at", models.DateTimeField()),
            ],
            options={
                "db_table": "processed_events",
                "ordering": ["-received_at"],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("subscription_type_id", models.UUIDField()),
                ("purchaser_name", models.CharField(blank=True, max_length=255, null=True)),
                ("purchaser_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("valid_from", models.DateTimeField()),
                ("valid_to", models.DateTimeField()),
                ("gateway_subscription_id", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("active", "Active"), ("expired", "Expired")],
                        default="pending",
                        max_length=16,
                    ),
                ),
            ],
            options={
                "db_table": "subscriptions",
                "ordering": ["-valid_from"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(valid_from__lte=django.db.models.expressions.F("valid_to")),
                        name="subscription_window_ordered",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Ticket",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("event_id", models.UUIDField()),
                ("tier_id", models.UUIDField()),
                ("purchaser_name", models.CharField(blank=True, max_length=255, null=True)),
                ("purchaser_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("is_validated", models.BooleanField(default=False)),
                ("validated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "tickets",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["event_id"], name="tickets_event_id_idx")],
            },
        ),
    ]
