import logging

from .models import IdVerification

logger = logging.getLogger(__name__)


def repair_incomplete_pending_verifications(dry_run=False):
    """
    Reset pending verifications that are missing an ID image back to
    not-submitted. Returns the number of affected records.
    """
    queryset = IdVerification.objects.incomplete_pending()
    user_ids = list(queryset.values_list('user_id', flat=True))
    if not user_ids:
        logger.info("No incomplete pending ID verifications found.")
        return 0

    if dry_run:
        logger.info(f"Dry run: {len(user_ids)} incomplete pending ID verifications would be reset (users: {user_ids})")
        return len(user_ids)

    # queryset.update skips full_clean; the rows are invalid until reset.
    count = queryset.update(status=None, submitted_at=None)
    logger.warning(f"Reset {count} incomplete pending ID verifications to not submitted (users: {user_ids})")
    return count
