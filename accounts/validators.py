import os
from django.conf import settings
from PIL import Image, UnidentifiedImageError

from .exceptions import ValidationFailed

SIDE_LABELS = {
    'front_image': 'Front side',
    'back_image': 'Back side',
}


def _format_mb(size):
    return f"{size / 1048576:g}MB"


def validate_id_image(file, field):
    """
    Check an uploaded ID image against the configured size and type limits.

    Raises ``ValidationFailed`` naming ``field``. The file is rewound so it
    can be handed to storage afterwards.
    """
    config = settings.ID_VERIFICATION
    label = SIDE_LABELS.get(field, 'File')

    if file is None:
        raise ValidationFailed(field, f"{label} of ID is required.")

    max_size = config['MAX_UPLOAD_SIZE']
    if file.size > max_size:
        raise ValidationFailed(field, f"{label} image must not exceed {_format_mb(max_size)}.")

    extension = os.path.splitext(file.name or '')[1].lower().lstrip('.')
    content_type = (getattr(file, 'content_type', '') or '').lower()
    if extension not in config['ALLOWED_EXTENSIONS'] or (
        content_type and content_type not in config['ALLOWED_CONTENT_TYPES']
    ):
        raise ValidationFailed(field, f"{label} must be an image file.")

    try:
        file.seek(0)
        Image.open(file).verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
        raise ValidationFailed(field, f"{label} must be an image file.")
    finally:
        file.seek(0)
    return file


def validate_id_type(id_type):
    from .models import IdTypeChoices

    if id_type in (None, ''):
        return None
    if id_type not in IdTypeChoices.values:
        raise ValidationFailed('id_type', 'Please select a valid ID type.')
    return id_type
