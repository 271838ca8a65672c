import logging

from django.http import JsonResponse
from django.urls import reverse
from django.utils.deprecation import MiddlewareMixin
from rest_framework.authentication import TokenAuthentication
from rest_framework.exceptions import AuthenticationFailed

from .models import UserProfile, VerificationStatus

logger = logging.getLogger(__name__)


class RequireIdVerificationMiddleware(MiddlewareMixin):
    """
    Block users an admin has flagged for mandatory ID verification until
    their ID has been verified.
    """

    allowed_url_names = {
        'id-verification-show',
        'id-verification-upload-front',
        'id-verification-upload-back',
        'id-verification-resubmit',
        'user-profile',
        'schema',
        'swagger-ui',
        'redoc',
    }
    allowed_path_prefixes = ('/admin/',)

    def process_view(self, request, view_func, view_args, view_kwargs):
        user = self._resolve_user(request)
        if user is None or not user.is_authenticated or user.is_staff:
            return None
        if self._is_allowed(request):
            return None

        profile = UserProfile.objects.filter(user=user).only('id_verification_required_by_admin').first()
        if profile is None or not profile.id_verification_required_by_admin:
            return None

        verification = getattr(user, 'id_verification', None)
        if verification is not None and verification.status == VerificationStatus.VERIFIED:
            return None

        logger.warning(f"Blocked {request.method} {request.path} for user {user.pk}: ID verification required")
        return JsonResponse({
            'message': 'ID verification required. Please complete identity verification to continue.',
            'redirect': reverse('id-verification-show'),
        }, status=403)

    def _resolve_user(self, request):
        """
        Session users are attached by ``AuthenticationMiddleware``; API token
        users are only known to DRF, so look the token up here as well.
        """
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            return user
        try:
            authenticated = TokenAuthentication().authenticate(request)
        except AuthenticationFailed:
            # The view rejects the bad token with a 401.
            return None
        return authenticated[0] if authenticated else None

    def _is_allowed(self, request):
        match = getattr(request, 'resolver_match', None)
        if match is not None and match.url_name in self.allowed_url_names:
            return True
        return request.path.startswith(self.allowed_path_prefixes)
