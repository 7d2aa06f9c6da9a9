"""
cloudinary_utils.py

Cloudinary integration for user avatars in the ORII research portal.
"""

import cloudinary
import cloudinary.uploader
import cloudinary.utils
from portal.settings import settings
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# Configure Cloudinary
cloudinary.config(
    cloud_name=settings.cloudinary_cloud_name,
    api_key=settings.cloudinary_api_key,
    api_secret=settings.cloudinary_api_secret,
    secure=True,
)


def upload_avatar_to_cloudinary(file_content: bytes, filename: str, user_id: int) -> dict:
    """
    Upload an avatar image to Cloudinary, replacing the user's previous one.

    Returns:
        dict: {"success", "url", "public_id"} or {"success": False, "error"}
    """
    try:
        result = cloudinary.uploader.upload(
            file_content,
            public_id=f"avatar_{user_id}",
            folder="orii/avatars",
            resource_type="image",
            overwrite=True,
            invalidate=True,
            transformation=[{"width": 400, "height": 400, "crop": "fill", "gravity": "face"}],
            tags=["avatar", f"user_{user_id}"],
        )
        return {
            "success": True,
            "url": result["secure_url"],
            "public_id": result["public_id"],
            "original_filename": filename,
        }
    except Exception as e:
        logger.error(f"Cloudinary upload failed: {str(e)}")
        return {"success": False, "error": str(e)}


def delete_avatar(public_id: str) -> bool:
    try:
        result = cloudinary.uploader.destroy(public_id, resource_type="image")
        return result.get("result") == "ok"
    except Exception as e:
        logger.error(f"Cloudinary deletion failed: {str(e)}")
        return False


def get_avatar_url(public_id: str) -> Optional[str]:
    try:
        return cloudinary.utils.cloudinary_url(public_id, secure=True)[0]
    except Exception as e:
        logger.error(f"Failed to generate URL: {str(e)}")
        return None
