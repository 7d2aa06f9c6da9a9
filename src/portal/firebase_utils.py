"""
firebase_utils.py

Firebase Storage integration for research paper files. Uses centralized settings
from portal.settings. Paper blobs stay private; downloads go through short-lived
signed URLs.
"""
import logging
from datetime import timedelta

import firebase_admin
from firebase_admin import credentials, storage

from portal.settings import settings

logger = logging.getLogger(__name__)


def get_bucket():
    if not firebase_admin._apps:
        cred = credentials.Certificate(settings.firebase_cred_path)
        firebase_admin.initialize_app(cred, {
            "storageBucket": settings.firebase_storage_bucket
        })
    return storage.bucket()


def upload_file_to_firebase(content: bytes, path: str, content_type: str) -> str:
    bucket = get_bucket()
    blob = bucket.blob(path)
    blob.upload_from_string(content, content_type=content_type)
    logger.info(f"Uploaded {len(content)} bytes to {path}")
    return path


def generate_download_url(path: str, filename: str) -> str:
    blob = get_bucket().blob(path)
    return blob.generate_signed_url(
        expiration=timedelta(minutes=settings.signed_url_expire_minutes),
        response_disposition=f'attachment; filename="{filename}"',
        version="v4",
    )


def delete_file_from_firebase(path: str) -> bool:
    try:
        get_bucket().blob(path).delete()
        return True
    except Exception as e:
        logger.error(f"Firebase deletion failed for {path}: {e}")
        return False
