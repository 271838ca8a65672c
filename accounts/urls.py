from django.urls import path
from .views import (
    profile, user_profile,
    id_verification_status, upload_front, upload_back, resubmit,
    AdminIdVerificationListView, admin_verification_statistics, admin_verification_detail,
    admin_approve, admin_reject, admin_bulk_approve, admin_bulk_reject,
    admin_require_verification, admin_export_csv,
)

urlpatterns = [
    # Profile
    path('profile/', profile, name='user-profile'),
    path('users/<int:user_id>/profile/', user_profile, name='user-profile-detail'),

    # ID verification
    path('id-verification/', id_verification_status, name='id-verification-show'),
    path('id-verification/upload-front/', upload_front, name='id-verification-upload-front'),
    path('id-verification/upload-back/', upload_back, name='id-verification-upload-back'),
    path('id-verification/resubmit/', resubmit, name='id-verification-resubmit'),

    # Admin review
    path('admin/id-verifications/', AdminIdVerificationListView.as_view(), name='admin-id-verifications'),
    path('admin/id-verifications/statistics/', admin_verification_statistics, name='admin-id-verifications-statistics'),
    path('admin/id-verifications/export-csv/', admin_export_csv, name='admin-id-verifications-export-csv'),
    path('admin/id-verifications/bulk-approve/', admin_bulk_approve, name='admin-id-verifications-bulk-approve'),
    path('admin/id-verifications/bulk-reject/', admin_bulk_reject, name='admin-id-verifications-bulk-reject'),
    path('admin/id-verifications/<int:user_id>/', admin_verification_detail, name='admin-id-verifications-show'),
    path('admin/id-verifications/<int:user_id>/approve/', admin_approve, name='admin-id-verifications-approve'),
    path('admin/id-verifications/<int:user_id>/reject/', admin_reject, name='admin-id-verifications-reject'),
    path('admin/id-verifications/<int:user_id>/require/', admin_require_verification, name='admin-id-verifications-require'),
]
