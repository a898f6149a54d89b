import os
import uuid
import logging

from fastapi import UploadFile

from school_erp.core.config import settings, get_upload_folder
from school_erp.core.errors import ValidationError

logger = logging.getLogger(__name__)


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in settings.ALLOWED_EXTENSIONS


async def save_image(upload: UploadFile, school_code: str, folder: str) -> str:
    """Store an uploaded image under UPLOAD_FOLDER/<school>/<folder>/ and return its public path."""
    if not upload.filename or not allowed_file(upload.filename):
        raise ValidationError(
            "Invalid file type",
            details={"allowed": sorted(settings.ALLOWED_EXTENSIONS)}
        )
    if upload.content_type and not upload.content_type.startswith("image/"):
        raise ValidationError("Only image uploads are accepted")

    content = await upload.read()
    if len(content) > settings.MAX_CONTENT_LENGTH:
        raise ValidationError(
            "File too large",
            details={"max_bytes": settings.MAX_CONTENT_LENGTH}
        )

    extension = upload.filename.rsplit(".", 1)[1].lower()
    relative_dir = os.path.join(school_code, folder)
    target_dir = os.path.join(get_upload_folder(), relative_dir)
    os.makedirs(target_dir, exist_ok=True)

    filename = f"{uuid.uuid4().hex}.{extension}"
    with open(os.path.join(target_dir, filename), "wb") as f:
        f.write(content)

    logger.info(f"Stored upload {filename} for {school_code}/{folder}")
    return "/uploads/" + "/".join([school_code, folder, filename])
