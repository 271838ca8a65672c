from django import forms
from django.contrib import admin, messages
from django.contrib.admin.helpers import ActionForm
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin
from django.db.models import Count
from django.urls import reverse
from django.utils.html import format_html

from .exceptions import IdVerificationError
from .models import UserProfile, AuditLog, IdVerification, VerificationStatus
from .services import IdVerificationService

User = get_user_model()


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profile'
    fk_name = 'user'
    fields = ('user_type', 'phone', 'notify_email', 'notify_in_app', 'id_verification_required_by_admin')


class IdVerificationInline(admin.StackedInline):
    model = IdVerification
    can_delete = False
    verbose_name_plural = 'ID Verification'
    fk_name = 'user'
    fields = ('status', 'id_type', 'front_image', 'back_image', 'verified_at', 'review_notes', 'reviewed_by', 'submitted_at')
    readonly_fields = fields


class CustomUserAdmin(UserAdmin):
    inlines = (UserProfileInline, IdVerificationInline)
    list_display = ('username', 'email', 'phone_number', 'id_verification_status', 'last_login', 'is_active')
    search_fields = ('username', 'email', 'profile__phone', 'first_name', 'last_name')
    ordering = ('-date_joined',)
    list_per_page = 25

    def phone_number(self, obj):
        return obj.profile.phone if hasattr(obj, 'profile') else 'N/A'
    phone_number.short_description = 'Phone Number'
    phone_number.admin_order_field = 'profile__phone'

    def id_verification_status(self, obj):
        verification = getattr(obj, 'id_verification', None)
        return verification.get_status_display() if verification and verification.status else 'Not submitted'
    id_verification_status.short_description = 'ID Verification'
    id_verification_status.admin_order_field = 'id_verification__status'


class ReviewActionForm(ActionForm):
    reason = forms.CharField(required=False, max_length=500, label='Rejection reason')


STATUS_COLORS = {
    VerificationStatus.PENDING: 'orange',
    VerificationStatus.VERIFIED: 'green',
    VerificationStatus.REJECTED: 'red',
}


@admin.register(IdVerification)
class IdVerificationAdmin(admin.ModelAdmin):
    list_display = ('user_link', 'id_type', 'status_badge', 'submitted_at', 'verified_at', 'reviewed_by')
    list_filter = ('status', 'id_type', 'submitted_at')
    search_fields = ('user__username', 'user__email', 'user__first_name', 'user__last_name')
    readonly_fields = (
        'user', 'status', 'id_type', 'front_image_preview', 'back_image_preview',
        'verified_at', 'review_notes', 'reviewed_by', 'submitted_at', 'created_at', 'updated_at',
    )
    fields = readonly_fields
    ordering = ('-submitted_at', '-created_at')
    list_per_page = 25
    action_form = ReviewActionForm
    actions = ['approve_selected', 'reject_selected']

    def has_add_permission(self, request):
        return False

    def user_link(self, obj):
        return format_html('<a href="{}">{}</a>',
                           reverse('admin:auth_user_change', args=[obj.user.id]),
                           obj.user.username)
    user_link.short_description = 'User'
    user_link.admin_order_field = 'user__username'

    def status_badge(self, obj):
        if not obj.status:
            return 'Not submitted'
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            STATUS_COLORS.get(obj.status, 'black'),
            obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    def front_image_preview(self, obj):
        if obj.front_image:
            return format_html('<img src="{}" width="240" />', obj.front_image)
        return 'No image'
    front_image_preview.short_description = 'Front of ID'

    def back_image_preview(self, obj):
        if obj.back_image:
            return format_html('<img src="{}" width="240" />', obj.back_image)
        return 'No image'
    back_image_preview.short_description = 'Back of ID'

    def approve_selected(self, request, queryset):
        service = IdVerificationService()
        count = 0
        for verification in queryset.with_both_images().select_related('user'):
            service.approve(request.user, verification.user)
            count += 1
        self.message_user(request, f"Approved {count} ID verification(s). Users have been notified.")
    approve_selected.short_description = 'Approve selected ID verifications'

    def reject_selected(self, request, queryset):
        reason = request.POST.get('reason', '').strip()
        if not reason:
            self.message_user(request, 'Please provide a reason for rejection.', level=messages.ERROR)
            return None
        service = IdVerificationService()
        count = 0
        try:
            for verification in queryset.with_both_images().select_related('user'):
                service.reject(request.user, verification.user, reason)
                count += 1
        except IdVerificationError as e:
            self.message_user(request, e.message, level=messages.ERROR)
        self.message_user(request, f"Rejected {count} ID verification(s). Users have been notified.")
    reject_selected.short_description = 'Reject selected ID verifications (enter reason above)'


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'user', 'action', 'severity', 'ip_address', 'description_preview')
    list_filter = ('action', 'severity', 'timestamp')
    search_fields = ('user__username', 'user__email', 'description', 'ip_address', 'action')
    readonly_fields = ('timestamp', 'user', 'action', 'description', 'ip_address', 'user_agent', 'severity', 'content_type', 'object_id', 'metadata')
    ordering = ('-timestamp',)
    date_hierarchy = 'timestamp'
    list_per_page = 50

    fieldsets = (
        ('Event Information', {
            'fields': ('timestamp', 'action', 'description', 'severity')
        }),
        ('User Information', {
            'fields': ('user', 'ip_address', 'user_agent')
        }),
        ('Object Information', {
            'fields': ('content_type', 'object_id'),
            'classes': ('collapse',)
        }),
        ('Additional Data', {
            'fields': ('metadata',),
            'classes': ('collapse',)
        }),
    )

    actions = ['analyze_patterns']

    def description_preview(self, obj):
        return obj.description[:100] + '...' if len(obj.description) > 100 else obj.description
    description_preview.short_description = 'Description'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def analyze_patterns(self, request, queryset):
        patterns = queryset.values('action').annotate(count=Count('id')).order_by('-count')[:5]
        pattern_text = '\n'.join([f"- {p['action']}: {p['count']} events" for p in patterns])
        self.message_user(request, f'Top 5 patterns:\n{pattern_text}')
    analyze_patterns.short_description = "Analyze patterns"


# Unregister the default User admin and register our custom one
admin.site.unregister(User)
admin.site.register(User, CustomUserAdmin)
