# Generated migration for the rewards engine schema

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models

REWARD_TYPES = [
    ("percentage_discount", "Percentage discount"),
    ("fixed_discount", "Fixed discount"),
    ("free_service", "Free service"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="TrackDefinition",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "name",
                    models.SlugField(
                        help_text="Stable key used by the progress ledger (e.g. nails, spend)",
                        unique=True,
                        verbose_name="internal name",
                    ),
                ),
                ("display_name", models.CharField(max_length=100, verbose_name="display name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("icon", models.CharField(blank=True, default="🎁", max_length=20, verbose_name="icon")),
                (
                    "track_type",
                    models.CharField(
                        choices=[("visit_count", "Visit count"), ("spend_amount", "Spend amount")],
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                (
                    "milestones",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Ordered list of milestone objects",
                        verbose_name="milestones",
                    ),
                ),
                ("reward_expiry_days", models.PositiveIntegerField(default=90, verbose_name="reward expiry (days)")),
                (
                    "reward_applicable_to",
                    models.CharField(
                        blank=True,
                        help_text=(
                            "Empty = any service. 'same_category' = category of the earning "
                            "booking. Otherwise a category name or service id."
                        ),
                        max_length=100,
                        verbose_name="reward applicable to",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("display_order", models.IntegerField(default=0, verbose_name="display order")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "reward track",
                "verbose_name_plural": "reward tracks",
                "db_table": "track_definitions",
                "ordering": ["display_order", "name"],
            },
        ),
        migrations.CreateModel(
            name="ServiceTrackMapping",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "points_multiplier",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("1.00"),
                        help_text="1.5 = 150% credit toward the track",
                        max_digits=6,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="multiplier",
                    ),
                ),
                (
                    "requires_payment",
                    models.BooleanField(
                        default=True,
                        help_text="Only credit once payment is confirmed",
                        verbose_name="requires payment",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("service_id", models.CharField(db_index=True, max_length=64, verbose_name="service id")),
                (
                    "track",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="rewardman.trackdefinition",
                        verbose_name="track",
                    ),
                ),
            ],
            options={
                "verbose_name": "service → track mapping",
                "verbose_name_plural": "service → track mappings",
                "db_table": "service_track_mappings",
                "constraints": [
                    models.UniqueConstraint(fields=("service_id", "track"), name="unique_service_track_mapping"),
                    models.CheckConstraint(
                        condition=models.Q(points_multiplier__gte=0),
                        name="service_mapping_multiplier_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CategoryTrackMapping",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "points_multiplier",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("1.00"),
                        help_text="1.5 = 150% credit toward the track",
                        max_digits=6,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="multiplier",
                    ),
                ),
                (
                    "requires_payment",
                    models.BooleanField(
                        default=True,
                        help_text="Only credit once payment is confirmed",
                        verbose_name="requires payment",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("category_name", models.CharField(db_index=True, max_length=100, verbose_name="category")),
                (
                    "track",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="rewardman.trackdefinition",
                        verbose_name="track",
                    ),
                ),
            ],
            options={
                "verbose_name": "category → track mapping",
                "verbose_name_plural": "category → track mappings",
                "db_table": "category_track_mappings",
                "constraints": [
                    models.UniqueConstraint(fields=("category_name", "track"), name="unique_category_track_mapping"),
                    models.CheckConstraint(
                        condition=models.Q(points_multiplier__gte=0),
                        name="category_mapping_multiplier_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RewardsProgramme",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("programme_enabled", models.BooleanField(default=True, verbose_name="programme enabled")),
                ("programme_name", models.CharField(default="Salon Rewards", max_length=100, verbose_name="programme name")),
                ("terms_conditions", models.TextField(blank=True, verbose_name="terms & conditions")),
                ("terms_version", models.CharField(default="1.0", max_length=20, verbose_name="terms version")),
                (
                    "spend_tracking_enabled",
                    models.BooleanField(
                        default=True,
                        help_text="Credit the legacy spend track when no mapping matches",
                        verbose_name="spend tracking enabled",
                    ),
                ),
                ("referral_enabled", models.BooleanField(default=True, verbose_name="referrals enabled")),
                (
                    "referral_min_booking_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("1000"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="referral minimum booking value",
                    ),
                ),
                (
                    "referral_reward_type",
                    models.CharField(
                        choices=REWARD_TYPES,
                        default="free_service",
                        max_length=30,
                        verbose_name="referral reward type",
                    ),
                ),
                (
                    "referral_reward_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="referral reward value",
                    ),
                ),
                (
                    "referral_reward_description",
                    models.CharField(
                        default="Complimentary wash & blow-dry",
                        max_length=200,
                        verbose_name="referral reward description",
                    ),
                ),
                (
                    "referral_reward_expiry_days",
                    models.PositiveIntegerField(default=90, verbose_name="referral reward expiry (days)"),
                ),
                ("packages_enabled", models.BooleanField(default=True, verbose_name="packages enabled")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "rewards programme",
                "verbose_name_plural": "rewards programme",
                "db_table": "rewards_programme",
            },
        ),
        migrations.CreateModel(
            name="TrackProgress",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(db_index=True, max_length=64, verbose_name="user id")),
                ("track_name", models.CharField(db_index=True, max_length=50, verbose_name="track")),
                (
                    "current_count",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12, verbose_name="current count"),
                ),
                (
                    "current_amount",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="current amount"),
                ),
                (
                    "lifetime_count",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12, verbose_name="lifetime count"),
                ),
                (
                    "lifetime_amount",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="lifetime amount"),
                ),
                ("last_milestone_reached", models.IntegerField(default=0, verbose_name="last milestone reached")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "track progress",
                "verbose_name_plural": "track progress",
                "db_table": "user_track_progress",
                "constraints": [
                    models.UniqueConstraint(fields=("user_id", "track_name"), name="unique_user_track_progress"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProgressCredit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("booking_id", models.CharField(max_length=64, verbose_name="booking id")),
                ("track_name", models.CharField(max_length=50, verbose_name="track")),
                ("user_id", models.CharField(db_index=True, max_length=64, verbose_name="user id")),
                (
                    "count_delta",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12, verbose_name="count delta"),
                ),
                (
                    "amount_delta",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="amount delta"),
                ),
                ("credited_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="credited at")),
            ],
            options={
                "verbose_name": "progress credit",
                "verbose_name_plural": "progress credits",
                "db_table": "progress_credits",
                "constraints": [
                    models.UniqueConstraint(fields=("booking_id", "track_name"), name="unique_booking_track_credit"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RewardGrant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_id", models.CharField(db_index=True, max_length=64, verbose_name="user id")),
                ("reward_type", models.CharField(choices=REWARD_TYPES, max_length=30, verbose_name="reward type")),
                ("reward_value", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="reward value")),
                (
                    "applicable_to",
                    models.CharField(
                        blank=True,
                        help_text="Empty = any booking; otherwise a category name or service id",
                        max_length=100,
                        verbose_name="applicable to",
                    ),
                ),
                ("description", models.CharField(max_length=200, verbose_name="description")),
                (
                    "source_track",
                    models.CharField(
                        db_index=True,
                        help_text="Track name, 'referral', or 'manual'",
                        max_length=50,
                        verbose_name="source track",
                    ),
                ),
                ("source_milestone", models.CharField(blank=True, max_length=100, verbose_name="source milestone")),
                ("source_booking_id", models.CharField(blank=True, max_length=64, verbose_name="source booking")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("redeemed", "Redeemed"),
                            ("expired", "Expired"),
                            ("revoked", "Revoked"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("expires_at", models.DateTimeField(blank=True, db_index=True, null=True, verbose_name="expires at")),
                ("redeemed_at", models.DateTimeField(blank=True, null=True, verbose_name="redeemed at")),
                (
                    "redeemed_booking_id",
                    models.CharField(blank=True, max_length=64, null=True, verbose_name="redeemed on booking"),
                ),
                (
                    "discount_amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=10, null=True, verbose_name="discount applied"
                    ),
                ),
                ("expired_at", models.DateTimeField(blank=True, null=True, verbose_name="expired at")),
                ("revoked_by", models.CharField(blank=True, max_length=100, verbose_name="revoked by")),
                ("revoked_reason", models.CharField(blank=True, max_length=255, verbose_name="revoke reason")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
            ],
            options={
                "verbose_name": "reward grant",
                "verbose_name_plural": "reward grants",
                "db_table": "user_rewards",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user_id", "status"], name="user_rewards_user_status_idx"),
                    models.Index(fields=["status", "expires_at"], name="user_rewards_status_exp_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(status="redeemed", redeemed_booking_id__isnull=False)
                            | (~models.Q(status="redeemed") & models.Q(redeemed_booking_id__isnull=True))
                        ),
                        name="grant_redeemed_booking_iff_redeemed",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(redeemed_booking_id__isnull=False),
                        fields=("redeemed_booking_id",),
                        name="unique_grant_per_booking",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Referral",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("referrer_id", models.CharField(db_index=True, max_length=64, verbose_name="referrer")),
                (
                    "referee_id",
                    models.CharField(
                        help_text="A customer can only be referred once",
                        max_length=64,
                        unique=True,
                        verbose_name="referee",
                    ),
                ),
                ("referral_code", models.CharField(blank=True, max_length=50, verbose_name="referral code")),
                ("first_booking_id", models.CharField(blank=True, max_length=64, verbose_name="first booking")),
                (
                    "first_booking_value",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=10, null=True, verbose_name="first booking value"
                    ),
                ),
                ("reward_issued", models.BooleanField(db_index=True, default=False, verbose_name="reward issued")),
                ("rewarded_at", models.DateTimeField(blank=True, null=True, verbose_name="rewarded at")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                (
                    "reward_grant",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="rewardman.rewardgrant",
                        verbose_name="reward grant",
                    ),
                ),
            ],
            options={
                "verbose_name": "referral",
                "verbose_name_plural": "referrals",
                "db_table": "referrals",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("referrer_id", models.F("referee_id")), _negated=True),
                        name="referral_not_self",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ServicePackage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("service_type", models.CharField(max_length=50, verbose_name="service type")),
                (
                    "applicable_service_id",
                    models.CharField(blank=True, max_length=64, verbose_name="applicable service"),
                ),
                (
                    "total_sessions",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="sessions",
                    ),
                ),
                ("base_price", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="base price")),
                (
                    "discount_percent",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                        verbose_name="discount %",
                    ),
                ),
                ("final_price", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="final price")),
                (
                    "validity_type",
                    models.CharField(
                        choices=[
                            ("calendar_month", "Until end of calendar month"),
                            ("days_from_purchase", "Days from purchase"),
                        ],
                        default="calendar_month",
                        max_length=30,
                        verbose_name="validity",
                    ),
                ),
                ("validity_days", models.PositiveIntegerField(blank=True, null=True, verbose_name="validity (days)")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
            ],
            options={
                "verbose_name": "service package",
                "verbose_name_plural": "service packages",
                "db_table": "service_packages",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="UserPackage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(db_index=True, max_length=64, verbose_name="user id")),
                ("package_name", models.CharField(max_length=100, verbose_name="package name")),
                ("total_sessions", models.PositiveIntegerField(verbose_name="sessions")),
                ("sessions_used", models.PositiveIntegerField(default=0, verbose_name="sessions used")),
                ("purchase_price", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="purchase price")),
                ("valid_from", models.DateTimeField(verbose_name="valid from")),
                ("valid_until", models.DateTimeField(db_index=True, verbose_name="valid until")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("exhausted", "Exhausted"), ("expired", "Expired")],
                        db_index=True,
                        default="active",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("expired_at", models.DateTimeField(blank=True, null=True, verbose_name="expired at")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                (
                    "package",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to="rewardman.servicepackage",
                        verbose_name="package",
                    ),
                ),
            ],
            options={
                "verbose_name": "customer package",
                "verbose_name_plural": "customer packages",
                "db_table": "user_packages",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(sessions_used__lte=models.F("total_sessions")),
                        name="package_sessions_within_total",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PackageSession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("booking_id", models.CharField(blank=True, max_length=64, verbose_name="booking id")),
                ("used_at", models.DateTimeField(auto_now_add=True, verbose_name="used at")),
                (
                    "user_package",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sessions",
                        to="rewardman.userpackage",
                        verbose_name="package",
                    ),
                ),
            ],
            options={
                "verbose_name": "package session",
                "verbose_name_plural": "package sessions",
                "db_table": "package_sessions",
                "ordering": ["-used_at"],
            },
        ),
    ]
