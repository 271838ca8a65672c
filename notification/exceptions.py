class NotificationDeliveryFailed(Exception):
    """Raised when a notification could not be stored or sent."""

    def __init__(self, notification_type, recipient_id, cause=None):
        self.notification_type = notification_type
        self.recipient_id = recipient_id
        self.cause = cause
        super().__init__(
            f"Failed to deliver {notification_type} notification to user {recipient_id}: {cause}"
        )
