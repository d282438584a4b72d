"""
File Handler Utilities
Attachment upload and validation
"""

import shutil
from pathlib import Path
from typing import Optional, Tuple
from fastapi import UploadFile, HTTPException, status
from datetime import datetime
import uuid

from src.config.settings import settings
from src.utils.logger import setup_logger

logger = setup_logger()


def validate_file(file: UploadFile) -> Tuple[bool, Optional[str]]:
    """
    Validate uploaded file

    Args:
        file: Uploaded file

    Returns:
        Tuple[bool, Optional[str]]: (is_valid, error_message)
    """
    if not file.filename or "." not in file.filename:
        return False, "File must have an extension"

    file_ext = file.filename.rsplit(".", 1)[-1].lower()
    if file_ext not in settings.allowed_extensions_list:
        return False, f"File type '{file_ext}' not allowed. Allowed types: {', '.join(settings.allowed_extensions_list)}"

    file.file.seek(0, 2)
    file_size = file.file.tell()
    file.file.seek(0)

    if file_size > settings.MAX_FILE_SIZE:
        max_size_mb = settings.MAX_FILE_SIZE / (1024 * 1024)
        return False, f"File size exceeds maximum allowed size of {max_size_mb}MB"

    if file_size == 0:
        return False, "File is empty"

    return True, None


def save_attachment(file: UploadFile, user_id: int) -> Tuple[str, str]:
    """
    Save an attachment (medical certificate, receipt, item photo) to disk

    Args:
        file: Uploaded file
        user_id: User ID who uploaded the file

    Returns:
        Tuple[str, str]: (public url, original file name)

    Raises:
        HTTPException: If file validation or save fails
    """
    is_valid, error_message = validate_file(file)
    if not is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_message
        )

    user_dir = Path(settings.UPLOAD_DIRECTORY) / str(user_id)
    user_dir.mkdir(parents=True, exist_ok=True)

    file_ext = file.filename.rsplit(".", 1)[-1].lower()
    unique_filename = f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}.{file_ext}"
    file_path = user_dir / unique_filename

    try:
        with file_path.open("wb") as buffer:
            shutil.copyfileobj(file.file, buffer)
    except OSError as e:
        logger.error(f"Error saving file: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save file"
        )
    finally:
        file.file.close()

    logger.info(f"File saved: {file_path} by user {user_id}")
    url = f"{settings.UPLOAD_URL_PREFIX}/{user_id}/{unique_filename}"
    return url, file.filename
