import logging
from datetime import timedelta

from app.errors import ValidationError
from app.firebase_init import get_bucket

logger = logging.getLogger(__name__)

AVATAR_EXTENSIONS = {'png', 'jpg', 'jpeg'}
AVATAR_MAX_BYTES = 1 * 1024 * 1024
# v4 signed URLs cannot outlive seven days
AVATAR_URL_DAYS = 7


def avatar_extension(filename):
    """Validated lowercase extension of an uploaded avatar."""
    ext = filename.rsplit('.', 1)[1].lower() if filename and '.' in filename else ''
    if ext not in AVATAR_EXTENSIONS:
        raise ValidationError('PNG, JPG, JPEG فقط مسموح بها للصورة الشخصية')
    return ext


def check_avatar_size(file_data):
    if len(file_data) > AVATAR_MAX_BYTES:
        raise ValidationError('حجم الصورة يجب ألا يتجاوز 1 ميغابايت')


def upload_avatar(uid, file_data, ext):
    """Upload the avatar bytes and return (storage_path, signed_url)."""
    check_avatar_size(file_data)
    path = f'users/{uid}/profile.{ext}'
    content_type = 'image/jpeg' if ext in ('jpg', 'jpeg') else f'image/{ext}'

    blob = get_bucket().blob(path)
    blob.upload_from_string(file_data, content_type=content_type)
    url = blob.generate_signed_url(
        version='v4',
        expiration=timedelta(days=AVATAR_URL_DAYS),
        method='GET',
    )
    logger.info('Avatar uploaded for %s', uid)
    return path, url


def delete_avatar(storage_path):
    """Remove a previous avatar; a missing blob is not an error."""
    if not storage_path:
        return
    blob = get_bucket().blob(storage_path)
    if blob.exists():
        blob.delete()
