import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import apps.integrations.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("organizations", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Integration",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "id",
                    models.CharField(
                        default=apps.integrations.models.generate_integration_id,
                        editable=False,
                        max_length=32,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(help_text="Human-readable name for this integration", max_length=100)),
                (
                    "description",
                    models.TextField(blank=True, help_text="Optional description of the receiving system"),
                ),
                (
                    "url",
                    models.URLField(
                        help_text="Absolute http(s) URL that receives the payload",
                        max_length=2048,
                        validators=[
                            django.core.validators.URLValidator(schemes=["http", "https"]),
                            apps.integrations.models.validate_integration_url,
                        ],
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[("POST", "POST"), ("PUT", "PUT"), ("PATCH", "PATCH")],
                        default="POST",
                        max_length=10,
                    ),
                ),
                (
                    "api_key",
                    models.CharField(
                        blank=True,
                        help_text="Optional secret sent as Bearer token and X-API-Key header",
                        max_length=255,
                    ),
                ),
                (
                    "headers",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Custom request headers (name -> value)",
                        validators=[apps.integrations.models.validate_headers],
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Whether application events are delivered to this integration",
                    ),
                ),
                (
                    "retry_attempts",
                    models.PositiveSmallIntegerField(
                        default=3,
                        help_text="Extra attempts after a retryable failure (0-5)",
                        validators=[django.core.validators.MaxValueValidator(5)],
                    ),
                ),
                (
                    "retry_delay_seconds",
                    models.PositiveIntegerField(
                        default=60,
                        help_text="Delay between attempts in seconds (0-3600)",
                        validators=[django.core.validators.MaxValueValidator(3600)],
                    ),
                ),
                (
                    "timeout_seconds",
                    models.PositiveSmallIntegerField(
                        default=30,
                        help_text="Request timeout in seconds (1-300)",
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(300),
                        ],
                    ),
                ),
                (
                    "last_execution_status",
                    models.CharField(
                        blank=True,
                        help_text="Status of most recent attempt: success, failed, retrying",
                        max_length=20,
                    ),
                ),
                (
                    "last_execution_at",
                    models.DateTimeField(blank=True, help_text="Timestamp of most recent attempt", null=True),
                ),
                (
                    "consecutive_failures",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Number of consecutive failed attempts (resets on success)",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who created this integration",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_integrations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="integration_set",
                        to="organizations.organization",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["organization", "is_active"], name="integration_org_active_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="FieldMapping",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "id",
                    models.CharField(
                        default=apps.integrations.models.generate_mapping_id,
                        editable=False,
                        max_length=32,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "source_field",
                    models.CharField(
                        help_text="Source path (e.g. 'amount', 'profiles.email') or 'static'",
                        max_length=100,
                        validators=[apps.integrations.models.validate_source_field],
                    ),
                ),
                (
                    "target_field",
                    models.CharField(help_text="Destination JSON key; dots create nested objects", max_length=255),
                ),
                (
                    "transformation",
                    models.CharField(
                        choices=[
                            ("none", "None"),
                            ("uppercase", "Uppercase"),
                            ("lowercase", "Lowercase"),
                            ("split_first", "Split First Name"),
                            ("split_last", "Split Last Name"),
                            ("calculate_age", "Calculate Age"),
                            ("append_months", 'Append " months"'),
                            ("generate_email", "Generate Email"),
                            ("date_format", "Format Date"),
                        ],
                        default="none",
                        max_length=30,
                    ),
                ),
                (
                    "default_value",
                    models.CharField(
                        blank=True,
                        help_text="Used when the source has no value (and verbatim for 'static')",
                        max_length=1000,
                    ),
                ),
                (
                    "is_required",
                    models.BooleanField(
                        default=False,
                        help_text="Abort the delivery when this field ends up without a value",
                    ),
                ),
                (
                    "field_order",
                    models.IntegerField(default=0, help_text="Evaluation and display order (ascending)"),
                ),
                (
                    "integration",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="field_mappings",
                        to="integrations.integration",
                    ),
                ),
            ],
            options={
                "ordering": ["field_order", "created_at"],
                "indexes": [
                    models.Index(fields=["integration", "field_order"], name="mapping_integration_order_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Delivery",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "id",
                    models.CharField(
                        default=apps.integrations.models.generate_delivery_id,
                        editable=False,
                        max_length=32,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "application_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Source application (empty for test invocations)",
                        max_length=64,
                    ),
                ),
                (
                    "trigger",
                    models.CharField(
                        choices=[
                            ("application.submitted", "Application submitted"),
                            ("application.status_changed", "Application status changed"),
                            ("manual", "Manual dispatch"),
                            ("test", "Test invocation"),
                        ],
                        default="manual",
                        max_length=40,
                    ),
                ),
                ("is_test", models.BooleanField(default=False)),
                (
                    "payload",
                    models.JSONField(blank=True, help_text="Compiled payload, resent unchanged on retries", null=True),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("retrying", "Retrying"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("attempts_made", models.PositiveSmallIntegerField(default=0)),
                (
                    "max_attempts",
                    models.PositiveSmallIntegerField(
                        default=1,
                        help_text="Attempt budget fixed when the delivery was created",
                    ),
                ),
                (
                    "next_attempt_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the next attempt is due (null when terminal)",
                        null=True,
                    ),
                ),
                (
                    "claimed_until",
                    models.DateTimeField(
                        blank=True,
                        help_text="Lease held by the worker running an attempt",
                        null=True,
                    ),
                ),
                ("last_error", models.TextField(blank=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "integration",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deliveries",
                        to="integrations.integration",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "deliveries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "next_attempt_at"], name="delivery_due_idx"),
                    models.Index(fields=["integration", "created_at"], name="delivery_integration_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ExecutionLog",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=apps.integrations.models.generate_log_id,
                        editable=False,
                        max_length=32,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("application_id", models.CharField(blank=True, max_length=64)),
                ("request_url", models.URLField(max_length=2048)),
                ("request_method", models.CharField(max_length=10)),
                ("request_headers", models.JSONField(blank=True, default=dict)),
                ("request_body", models.JSONField(blank=True, null=True)),
                ("response_status", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("response_headers", models.JSONField(blank=True, null=True)),
                ("response_body", models.TextField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("retrying", "Retrying"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "error_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("", "None"),
                            ("validation_error", "Validation Error"),
                            ("record_not_found", "Record Not Found"),
                            ("timeout", "Timeout"),
                            ("connection_error", "Connection Error"),
                            ("http_error", "HTTP Error"),
                        ],
                        default="",
                        max_length=30,
                    ),
                ),
                ("error_message", models.TextField(blank=True)),
                ("execution_time_ms", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of retries consumed before this attempt",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "delivery",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attempts",
                        to="integrations.delivery",
                    ),
                ),
                (
                    "integration",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="execution_logs",
                        to="integrations.integration",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-retry_count"],
                "indexes": [
                    models.Index(fields=["integration", "created_at"], name="execlog_integration_idx"),
                    models.Index(fields=["delivery", "retry_count"], name="execlog_delivery_idx"),
                ],
            },
        ),
    ]
