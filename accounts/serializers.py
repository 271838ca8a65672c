from django.contrib.auth import get_user_model
from rest_framework import serializers
from phonenumber_field.serializerfields import PhoneNumberField

from .models import UserProfile, IdVerification, IdTypeChoices

User = get_user_model()


class IdVerificationSerializer(serializers.ModelSerializer):
    """Full record, shown to the owner and to staff."""
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    id_type_label = serializers.CharField(read_only=True)
    can_upload = serializers.BooleanField(read_only=True)

    class Meta:
        model = IdVerification
        fields = [
            'status', 'status_display', 'id_type', 'id_type_label',
            'front_image', 'back_image', 'review_notes', 'verified_at',
            'submitted_at', 'can_upload', 'updated_at',
        ]
        read_only_fields = fields


class AdminIdVerificationSerializer(IdVerificationSerializer):
    user_id = serializers.IntegerField(source='user.id', read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    full_name = serializers.SerializerMethodField()
    reviewed_by = serializers.StringRelatedField()

    class Meta(IdVerificationSerializer.Meta):
        fields = ['user_id', 'username', 'email', 'full_name'] + IdVerificationSerializer.Meta.fields + ['reviewed_by']
        read_only_fields = fields

    def get_full_name(self, obj):
        return obj.user.get_full_name()


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Profile as rendered on profile pages. ``id_verification_status`` is
    public; the verification details are only included for the profile
    owner and staff.
    """
    user_id = serializers.IntegerField(source='user.id', read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    first_name = serializers.CharField(source='user.first_name', read_only=True)
    last_name = serializers.CharField(source='user.last_name', read_only=True)
    phone = PhoneNumberField(read_only=True)
    id_verification_status = serializers.SerializerMethodField()

    class Meta:
        model = UserProfile
        fields = [
            'user_id', 'username', 'first_name', 'last_name', 'user_type', 'phone',
            'id_verification_status',
        ]
        read_only_fields = fields

    def _verification(self, obj):
        return getattr(obj.user, 'id_verification', None)

    def get_id_verification_status(self, obj):
        verification = self._verification(obj)
        return verification.status if verification else None

    def to_representation(self, instance):
        data = super().to_representation(instance)
        request = self.context.get('request')
        viewer = getattr(request, 'user', None)
        if viewer is not None and (viewer.is_staff or viewer.pk == instance.user_id):
            verification = self._verification(instance)
            data['id_verification'] = IdVerificationSerializer(verification).data if verification else None
            data['id_verification_required_by_admin'] = instance.id_verification_required_by_admin
        return data


class IdFrontUploadSerializer(serializers.Serializer):
    front_image = serializers.FileField(
        required=True, allow_empty_file=False,
        error_messages={'required': 'Front side of ID is required.'}
    )
    id_type = serializers.ChoiceField(
        choices=IdTypeChoices.choices, required=False, allow_blank=True,
        error_messages={'invalid_choice': 'Please select a valid ID type.'}
    )


class IdBackUploadSerializer(serializers.Serializer):
    back_image = serializers.FileField(
        required=True, allow_empty_file=False,
        error_messages={'required': 'Back side of ID is required.'}
    )


class IdResubmitSerializer(IdFrontUploadSerializer, IdBackUploadSerializer):
    pass


class RejectIdVerificationSerializer(serializers.Serializer):
    reason = serializers.CharField(
        max_length=500, required=True, allow_blank=False, trim_whitespace=True,
        error_messages={
            'required': 'Please provide a reason for rejection.',
            'blank': 'Please provide a reason for rejection.',
            'max_length': 'Rejection notes cannot exceed 500 characters.',
        }
    )


class BulkReviewSerializer(serializers.Serializer):
    user_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), allow_empty=False
    )


class BulkRejectSerializer(BulkReviewSerializer, RejectIdVerificationSerializer):
    pass


class RequireIdVerificationSerializer(serializers.Serializer):
    required = serializers.BooleanField(default=True)
