"""Errors raised by the ID verification workflow."""


class IdVerificationError(Exception):
    """Base error; ``status_code`` is the HTTP status the API answers with."""

    status_code = 400
    default_message = 'ID verification request could not be processed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(IdVerificationError):
    status_code = 422

    def __init__(self, field, reason):
        self.field = field
        self.reason = reason
        super().__init__(reason)

    @property
    def errors(self):
        return {self.field: [self.reason]}


class StateGuardViolation(IdVerificationError):
    status_code = 400


class AlreadyUnderReview(StateGuardViolation):
    default_message = 'Your ID is currently under review. Please wait for admin verification.'


class AlreadyVerified(StateGuardViolation):
    default_message = 'Your ID is already verified.'


class FrontImageRequired(StateGuardViolation):
    default_message = 'Please upload front ID first'


class ResubmissionNotAllowed(StateGuardViolation):
    default_message = 'ID resubmission is only allowed after a rejection.'


class UploadFailed(IdVerificationError):
    status_code = 500
    default_message = 'Failed to upload image. Please try again.'

    def __init__(self, field=None, message=None):
        self.field = field
        super().__init__(message)
