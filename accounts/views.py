import csv
import logging

from django.contrib.auth import get_user_model
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, generics
from rest_framework.decorators import api_view, permission_classes
from rest_framework.filters import SearchFilter, OrderingFilter
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from rest_framework.response import Response

from .exceptions import IdVerificationError, ValidationFailed
from .models import UserProfile, IdVerification, VerificationStatus
from .serializers import (
    UserProfileSerializer, IdVerificationSerializer, AdminIdVerificationSerializer,
    IdFrontUploadSerializer, IdBackUploadSerializer, IdResubmitSerializer,
    RejectIdVerificationSerializer, BulkReviewSerializer, BulkRejectSerializer,
    RequireIdVerificationSerializer,
)
from .services import IdVerificationService, get_verification
from .utils import log_audit_event, get_client_ip, get_user_agent

logger = logging.getLogger(__name__)

User = get_user_model()


def get_verification_service():
    return IdVerificationService()


def validation_error_response(errors):
    first = next(iter(errors.values()))
    message = first[0] if isinstance(first, (list, tuple)) and first else str(first)
    return Response(
        {'success': False, 'message': str(message), 'errors': errors},
        status=status.HTTP_422_UNPROCESSABLE_ENTITY
    )


def workflow_error_response(error):
    body = {'success': False, 'message': error.message}
    errors = getattr(error, 'errors', None)
    if errors:
        body['errors'] = errors
    return Response(body, status=error.status_code)


# --- Profile ---
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def profile(request):
    """Get current user's profile, including ID verification details."""
    user_profile, _ = UserProfile.objects.get_or_create(user=request.user)
    serializer = UserProfileSerializer(user_profile, context={'request': request})
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_profile(request, user_id):
    """Browse another user's profile."""
    user = get_object_or_404(User, pk=user_id)
    user_profile, _ = UserProfile.objects.get_or_create(user=user)
    serializer = UserProfileSerializer(user_profile, context={'request': request})
    return Response(serializer.data)


# --- ID verification (account owner) ---
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def id_verification_status(request):
    verification = get_verification(request.user)
    return Response(IdVerificationSerializer(verification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def upload_front(request):
    serializer = IdFrontUploadSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    try:
        result = get_verification_service().upload_front(
            request.user,
            serializer.validated_data['front_image'],
            id_type=serializer.validated_data.get('id_type'),
        )
    except IdVerificationError as e:
        return workflow_error_response(e)
    return Response({
        'success': True,
        'url': result.url,
        'message': 'Front ID uploaded successfully',
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def upload_back(request):
    serializer = IdBackUploadSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    try:
        result = get_verification_service().upload_back(
            request.user, serializer.validated_data['back_image']
        )
    except IdVerificationError as e:
        return workflow_error_response(e)
    return Response({
        'success': True,
        'url': result.url,
        'status': result.status,
        'message': 'ID verification submitted successfully',
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def resubmit(request):
    serializer = IdResubmitSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    try:
        result = get_verification_service().resubmit(
            request.user,
            serializer.validated_data['front_image'],
            serializer.validated_data['back_image'],
            id_type=serializer.validated_data.get('id_type'),
        )
    except IdVerificationError as e:
        return workflow_error_response(e)
    return Response({
        'success': True,
        'status': result.status,
        'message': 'ID resubmitted successfully',
    })


# --- ID verification (admin) ---
def verification_stats():
    submitted = IdVerification.objects.with_both_images()
    return {
        'pending': submitted.filter(status=VerificationStatus.PENDING).count(),
        'verified': IdVerification.objects.filter(status=VerificationStatus.VERIFIED).count(),
        'rejected': IdVerification.objects.filter(status=VerificationStatus.REJECTED).count(),
        'total': submitted.count(),
    }


class IdVerificationPagination(PageNumberPagination):
    page_size = 20


class AdminIdVerificationListView(generics.ListAPIView):
    """Submitted ID verifications awaiting or past review."""
    permission_classes = [IsAdminUser]
    serializer_class = AdminIdVerificationSerializer
    pagination_class = IdVerificationPagination
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['status', 'id_type']
    search_fields = ['user__first_name', 'user__last_name', 'user__email', 'user__username']
    ordering_fields = ['submitted_at', 'created_at', 'updated_at']
    ordering = ['-submitted_at', '-created_at']

    def get_queryset(self):
        return IdVerification.objects.with_both_images().select_related('user', 'reviewed_by')

    def list(self, request, *args, **kwargs):
        logger.info(
            f"Admin {request.user.pk} accessed ID verifications list "
            f"(filters: {request.query_params.dict()})"
        )
        response = super().list(request, *args, **kwargs)
        response.data['stats'] = verification_stats()
        return response


@api_view(['GET'])
@permission_classes([IsAdminUser])
def admin_verification_statistics(request):
    logger.info(f"Admin {request.user.pk} requested ID verification statistics")
    return Response(verification_stats())


@api_view(['GET'])
@permission_classes([IsAdminUser])
def admin_verification_detail(request, user_id):
    user = get_object_or_404(User, pk=user_id)
    verification = get_verification(user)
    logger.info(
        f"Admin {request.user.pk} viewed ID verification for user {user.pk} "
        f"(status: {verification.status})"
    )
    if not verification.has_both_images:
        logger.warning(
            f"Admin {request.user.pk} opened incomplete ID verification for user {user.pk} "
            f"(front: {bool(verification.front_image)}, back: {bool(verification.back_image)})"
        )
        return Response(
            {'success': False, 'message': 'This user has not uploaded ID images yet.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    return Response(AdminIdVerificationSerializer(verification).data)


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_approve(request, user_id):
    user = get_object_or_404(User, pk=user_id)
    verification = get_verification_service().approve(request.user, user)
    return Response({
        'success': True,
        'status': verification.status,
        'message': 'ID verified successfully. User has been notified.',
    })


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_reject(request, user_id):
    user = get_object_or_404(User, pk=user_id)
    serializer = RejectIdVerificationSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    try:
        verification = get_verification_service().reject(
            request.user, user, serializer.validated_data['reason']
        )
    except IdVerificationError as e:
        return workflow_error_response(e)
    return Response({
        'success': True,
        'status': verification.status,
        'message': 'ID verification rejected. User has been notified.',
    })


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_bulk_approve(request):
    serializer = BulkReviewSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    user_ids = serializer.validated_data['user_ids']
    logger.info(f"Admin {request.user.pk} started bulk approval of {len(user_ids)} ID verifications")
    result = get_verification_service().bulk_approve(request.user, user_ids)
    return Response({
        'success': True,
        'count': result.count,
        'failed_user_ids': result.failed_user_ids,
        'message': f"{result.count} ID verification(s) approved successfully.",
    })


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_bulk_reject(request):
    serializer = BulkRejectSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    user_ids = serializer.validated_data['user_ids']
    logger.info(f"Admin {request.user.pk} started bulk rejection of {len(user_ids)} ID verifications")
    try:
        result = get_verification_service().bulk_reject(
            request.user, user_ids, serializer.validated_data['reason']
        )
    except IdVerificationError as e:
        return workflow_error_response(e)
    return Response({
        'success': True,
        'count': result.count,
        'failed_user_ids': result.failed_user_ids,
        'message': f"{result.count} ID verification(s) rejected.",
    })


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_require_verification(request, user_id):
    user = get_object_or_404(User, pk=user_id)
    serializer = RequireIdVerificationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    required = serializer.validated_data['required']

    user_profile, _ = UserProfile.objects.get_or_create(user=user)
    user_profile.id_verification_required_by_admin = required
    user_profile.save(update_fields=['id_verification_required_by_admin', 'updated_at'])

    logger.info(f"Admin {request.user.pk} set ID verification required={required} for user {user.pk}")
    log_audit_event(
        user=request.user,
        action='id_verification_required',
        description=f"Admin {request.user.pk} set mandatory ID verification to {required} for user {user.pk}",
        severity='medium',
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        content_object=user_profile,
    )
    return Response({'success': True, 'required': required})


CSV_FORMULA_PREFIXES = ('=', '+', '-', '@', '\t', '\r')


def csv_safe(value):
    """Neutralise cells a spreadsheet would evaluate as a formula."""
    if isinstance(value, str) and value.startswith(CSV_FORMULA_PREFIXES):
        return f"'{value}"
    return value


def parse_date_param(params, name):
    raw = params.get(name)
    if not raw:
        return None
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationFailed(name, f"Enter a valid date (YYYY-MM-DD) for {name}.")
    return value


@api_view(['GET'])
@permission_classes([IsAdminUser])
def admin_export_csv(request):
    """Export submitted ID verifications as CSV."""
    params = request.query_params
    logger.info(f"Admin {request.user.pk} started ID verification CSV export (filters: {params.dict()})")

    try:
        from_date = parse_date_param(params, 'from_date')
        to_date = parse_date_param(params, 'to_date')
    except ValidationFailed as e:
        logger.warning(f"ID verification CSV export by admin {request.user.pk} refused: {e.message}")
        return workflow_error_response(e)

    queryset = IdVerification.objects.with_both_images().select_related('user')
    if params.get('status'):
        queryset = queryset.filter(status=params['status'])
    if params.get('id_type'):
        queryset = queryset.filter(id_type=params['id_type'])
    if from_date:
        queryset = queryset.filter(submitted_at__date__gte=from_date)
    if to_date:
        queryset = queryset.filter(submitted_at__date__lte=to_date)
    queryset = queryset.order_by('-submitted_at')

    file_name = f"id_verifications_{timezone.now().strftime('%Y-%m-%d_%H%M%S')}.csv"
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{file_name}"'

    writer = csv.writer(response)
    writer.writerow(['ID', 'Name', 'Email', 'ID Type', 'Status', 'Submitted Date'])
    count = 0
    for verification in queryset:
        user = verification.user
        submitted = verification.submitted_at or verification.created_at
        writer.writerow([
            user.pk,
            csv_safe(user.get_full_name() or user.username),
            csv_safe(user.email),
            verification.get_id_type_display() if verification.id_type else '',
            (verification.status or '').capitalize(),
            timezone.localtime(submitted).strftime('%Y-%m-%d %H:%M:%S'),
        ])
        count += 1

    logger.info(f"ID verification CSV export by admin {request.user.pk} completed ({count} records)")
    return response
