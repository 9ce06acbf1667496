"""Rewardman admin.

Tracks, mappings and the programme row are staff-editable. Grants, the
progress ledger and credits are read-only here: grants change state only
through the services (revoke is offered as an action).
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from rewardman.choices import GrantStatus, PackageStatus
from rewardman.exceptions import RewardmanError
from rewardman.models import (
    CategoryTrackMapping,
    PackageSession,
    ProgressCredit,
    Referral,
    RewardGrant,
    RewardsProgramme,
    ServicePackage,
    ServiceTrackMapping,
    TrackDefinition,
    TrackProgress,
    UserPackage,
)

_STATUS_COLORS = {
    GrantStatus.ACTIVE: "green",
    GrantStatus.REDEEMED: "#2563eb",
    GrantStatus.EXPIRED: "gray",
    GrantStatus.REVOKED: "#b91c1c",
    PackageStatus.EXHAUSTED: "#2563eb",
}


def _status_badge(status, label):
    return format_html(
        '<span style="color: {};">{}</span>',
        _STATUS_COLORS.get(status, "gray"),
        label,
    )


# ===========================================
# Programme
# ===========================================


@admin.register(RewardsProgramme)
class RewardsProgrammeAdmin(admin.ModelAdmin):
    list_display = ["programme_name", "programme_enabled", "referral_enabled", "packages_enabled", "updated_at"]
    readonly_fields = ["updated_at"]

    fieldsets = [
        (None, {"fields": ["programme_name", "programme_enabled", "spend_tracking_enabled"]}),
        (
            "Referrals",
            {
                "fields": [
                    "referral_enabled",
                    "referral_min_booking_value",
                    "referral_reward_type",
                    "referral_reward_value",
                    "referral_reward_description",
                    "referral_reward_expiry_days",
                ]
            },
        ),
        ("Packages", {"fields": ["packages_enabled"]}),
        ("Terms", {"fields": ["terms_version", "terms_conditions"], "classes": ["collapse"]}),
        ("Timestamps", {"fields": ["updated_at"], "classes": ["collapse"]}),
    ]

    def has_add_permission(self, request):
        return not RewardsProgramme.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# Tracks and mappings
# ===========================================


class ServiceTrackMappingInline(admin.TabularInline):
    model = ServiceTrackMapping
    extra = 0
    fields = ["service_id", "points_multiplier", "requires_payment", "is_active"]


class CategoryTrackMappingInline(admin.TabularInline):
    model = CategoryTrackMapping
    extra = 0
    fields = ["category_name", "points_multiplier", "requires_payment", "is_active"]


@admin.register(TrackDefinition)
class TrackDefinitionAdmin(admin.ModelAdmin):
    """Milestones are validated by TrackDefinition.clean() on save."""

    list_display = [
        "name",
        "display_name",
        "track_type",
        "milestone_count",
        "reward_expiry_days",
        "is_active",
        "display_order",
    ]
    list_filter = ["track_type", "is_active"]
    search_fields = ["name", "display_name"]
    list_editable = ["is_active", "display_order"]
    readonly_fields = ["id", "created_at", "updated_at"]
    inlines = [ServiceTrackMappingInline, CategoryTrackMappingInline]

    fieldsets = [
        (None, {"fields": ["id", "name", "display_name", "description", "icon", "track_type"]}),
        ("Milestones", {"fields": ["milestones"]}),
        ("Rewards", {"fields": ["reward_expiry_days", "reward_applicable_to"]}),
        ("Status", {"fields": ["is_active", "display_order"]}),
        ("Timestamps", {"fields": ["created_at", "updated_at"], "classes": ["collapse"]}),
    ]

    def get_readonly_fields(self, request, obj=None):
        # Ledger rows are keyed by name and interpreted by type
        if obj is not None:
            return [*self.readonly_fields, "name", "track_type"]
        return self.readonly_fields

    def milestone_count(self, obj):
        return len(obj.milestones or [])

    milestone_count.short_description = "Milestones"


@admin.register(ServiceTrackMapping)
class ServiceTrackMappingAdmin(admin.ModelAdmin):
    list_display = ["service_id", "track", "points_multiplier", "requires_payment", "is_active"]
    list_filter = ["track", "requires_payment", "is_active"]
    search_fields = ["service_id", "track__name"]


@admin.register(CategoryTrackMapping)
class CategoryTrackMappingAdmin(admin.ModelAdmin):
    list_display = ["category_name", "track", "points_multiplier", "requires_payment", "is_active"]
    list_filter = ["track", "requires_payment", "is_active"]
    search_fields = ["category_name", "track__name"]


# ===========================================
# Ledger (read-only)
# ===========================================


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(TrackProgress)
class TrackProgressAdmin(ReadOnlyAdmin):
    list_display = ["user_id", "track_name", "current_count", "current_amount", "last_milestone_reached", "updated_at"]
    list_filter = ["track_name"]
    search_fields = ["user_id"]


@admin.register(ProgressCredit)
class ProgressCreditAdmin(ReadOnlyAdmin):
    list_display = ["booking_id", "track_name", "user_id", "count_delta", "amount_delta", "credited_at"]
    list_filter = ["track_name"]
    search_fields = ["booking_id", "user_id"]
    date_hierarchy = "credited_at"


# ===========================================
# Grants
# ===========================================


@admin.register(RewardGrant)
class RewardGrantAdmin(admin.ModelAdmin):
    list_display = [
        "description",
        "user_id",
        "reward_type",
        "reward_value",
        "source_track",
        "status_badge",
        "expires_at",
        "created_at",
    ]
    list_filter = ["status", "reward_type", "source_track"]
    search_fields = ["user_id", "description", "source_booking_id", "redeemed_booking_id"]
    date_hierarchy = "created_at"
    actions = ["revoke_selected"]
    readonly_fields = [
        "id",
        "user_id",
        "reward_type",
        "reward_value",
        "applicable_to",
        "source_track",
        "source_milestone",
        "source_booking_id",
        "status",
        "expires_at",
        "redeemed_at",
        "redeemed_booking_id",
        "discount_amount",
        "expired_at",
        "revoked_by",
        "revoked_reason",
        "created_at",
        "created_by",
    ]

    fieldsets = [
        (None, {"fields": ["id", "user_id", "description", "status"]}),
        ("Reward", {"fields": ["reward_type", "reward_value", "applicable_to", "expires_at"]}),
        ("Source", {"fields": ["source_track", "source_milestone", "source_booking_id", "created_by"]}),
        ("Redemption", {"fields": ["redeemed_at", "redeemed_booking_id", "discount_amount"]}),
        (
            "Expiry / revocation",
            {"fields": ["expired_at", "revoked_by", "revoked_reason"], "classes": ["collapse"]},
        ),
        ("Timestamps", {"fields": ["created_at"], "classes": ["collapse"]}),
    ]

    def has_add_permission(self, request):
        return False

    def status_badge(self, obj):
        return _status_badge(obj.status, obj.get_status_display())

    status_badge.short_description = "Status"

    @admin.action(description="Revoke selected rewards")
    def revoke_selected(self, request, queryset):
        from rewardman.services.grants import GrantService

        revoked = 0
        for grant in queryset.filter(status=GrantStatus.ACTIVE):
            try:
                GrantService.revoke(grant.pk, revoked_by=request.user.get_username(), reason="admin action")
                revoked += 1
            except RewardmanError as exc:
                self.message_user(request, f"{grant.pk}: {exc.message}", messages.WARNING)
        self.message_user(request, f"Revoked {revoked} reward(s).", messages.SUCCESS)


# ===========================================
# Referrals
# ===========================================


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ["referrer_id", "referee_id", "referral_code", "reward_issued", "first_booking_value", "created_at"]
    list_filter = ["reward_issued"]
    search_fields = ["referrer_id", "referee_id", "referral_code"]
    readonly_fields = [
        "first_booking_id",
        "first_booking_value",
        "reward_issued",
        "reward_grant",
        "rewarded_at",
        "created_at",
    ]


# ===========================================
# Packages
# ===========================================


@admin.register(ServicePackage)
class ServicePackageAdmin(admin.ModelAdmin):
    list_display = ["name", "service_type", "total_sessions", "base_price", "discount_percent", "final_price", "validity_type", "is_active"]
    list_filter = ["service_type", "validity_type", "is_active"]
    search_fields = ["name", "applicable_service_id"]


class PackageSessionInline(admin.TabularInline):
    model = PackageSession
    extra = 0
    fields = ["booking_id", "used_at"]
    readonly_fields = ["booking_id", "used_at"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(UserPackage)
class UserPackageAdmin(admin.ModelAdmin):
    list_display = ["user_id", "package_name", "sessions_display", "status_badge", "valid_until"]
    list_filter = ["status", "package"]
    search_fields = ["user_id", "package_name"]
    raw_id_fields = ["package"]
    readonly_fields = ["sessions_used", "expired_at", "created_at"]
    inlines = [PackageSessionInline]

    def sessions_display(self, obj):
        return f"{obj.sessions_used}/{obj.total_sessions}"

    sessions_display.short_description = "Sessions"

    def status_badge(self, obj):
        return _status_badge(obj.status, obj.get_status_display())

    status_badge.short_description = "Status"
