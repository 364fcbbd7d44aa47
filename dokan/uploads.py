import logging
import os
import re
import uuid

from fastapi import HTTPException, UploadFile

from dokan.config import MAX_UPLOAD_BYTES, UPLOAD_DIR

logger = logging.getLogger(__name__)

ALLOWED_TYPES = re.compile(r"jpeg|jpg|png|gif|webp")
PUBLIC_PREFIX = "/uploads/"
CHUNK_SIZE = 64 * 1024


def check_image(file: UploadFile):
    ext = os.path.splitext(file.filename or "")[1].lower()
    if not ALLOWED_TYPES.search(ext) or not ALLOWED_TYPES.search(file.content_type or ""):
        raise HTTPException(400, "Only image files (JPEG, JPG, PNG, GIF, WEBP) are allowed")
    return ext


def save_image(file: UploadFile, folder, prefix):
    """Store an uploaded image under UPLOAD_DIR/<folder> and return its public path."""
    ext = check_image(file)
    target_dir = os.path.join(UPLOAD_DIR, folder)
    os.makedirs(target_dir, exist_ok=True)

    filename = f"{prefix}-{uuid.uuid4().hex}{ext}"
    disk_path = os.path.join(target_dir, filename)
    size = 0
    with open(disk_path, "wb") as buffer:
        while True:
            chunk = file.file.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > MAX_UPLOAD_BYTES:
                break
            buffer.write(chunk)
    if size > MAX_UPLOAD_BYTES:
        os.remove(disk_path)
        raise HTTPException(400, "File too large (max 5MB)")

    logger.info("Stored upload %s (%d bytes)", filename, size)
    return f"{PUBLIC_PREFIX}{folder}/{filename}", size


def disk_path_for(public_path):
    """Map /uploads/... to a file inside UPLOAD_DIR, or None if it escapes it."""
    if not public_path or not public_path.startswith(PUBLIC_PREFIX):
        return None
    root = os.path.realpath(UPLOAD_DIR)
    candidate = os.path.realpath(os.path.join(root, public_path[len(PUBLIC_PREFIX):]))
    if os.path.commonpath([root, candidate]) != root:
        return None
    return candidate


def delete_image(public_path):
    path = disk_path_for(public_path)
    if path is None or not os.path.isfile(path):
        return False
    os.remove(path)
    logger.info("Deleted upload %s", public_path)
    return True
