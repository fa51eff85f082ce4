"""Secure photo handling for complaint submissions."""
import io
import os
import uuid
from typing import Dict, Tuple

from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif"}
ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG", "GIF"}
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MB
PHOTO_URL_PREFIX = "/uploads/"


def _fail_if(condition: bool, message: str) -> None:
    if condition:
        raise ValueError(message)


def validate_image_file(file: FileStorage, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Tuple[bytes, str]:
    _fail_if(not file, "Photo is required")
    filename = secure_filename(file.filename or "")
    _fail_if(not filename or "." not in filename, "Unsupported file name")
    ext = filename.rsplit(".", 1)[1].lower()
    _fail_if(ext not in ALLOWED_IMAGE_EXTENSIONS, "Only image files are allowed")

    content = file.read()
    _fail_if(len(content) == 0, "Empty file")
    _fail_if(len(content) > max_bytes, "File exceeds size limits")

    try:
        with Image.open(io.BytesIO(content)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("Invalid image data") from exc
    _fail_if(image_format not in ALLOWED_IMAGE_FORMATS, "Only image files are allowed")

    file.stream.seek(0)
    return content, ext


def save_image_bytes(image_bytes: bytes, upload_dir: str, extension: str) -> Tuple[str, str]:
    os.makedirs(upload_dir, exist_ok=True)
    unique_name = f"complaint-{uuid.uuid4().hex}.{extension}"
    safe_name = secure_filename(unique_name)
    path = os.path.join(upload_dir, safe_name)
    with open(path, "wb") as f:
        f.write(image_bytes)
    return path, safe_name


def persist_image(file: FileStorage, upload_dir: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Dict:
    image_bytes, ext = validate_image_file(file, max_bytes=max_bytes)
    stored_path, stored_name = save_image_bytes(image_bytes, upload_dir, ext)
    return {
        "path": stored_path,
        "file_name": stored_name,
        "url": f"{PHOTO_URL_PREFIX}{stored_name}",
    }


def photo_path(photo_url: str, upload_dir: str) -> str | None:
    """Map a stored photo reference back onto the upload directory."""
    name = secure_filename(os.path.basename(photo_url or ""))
    if not name:
        return None
    return os.path.join(upload_dir, name)


def remove_photo(photo_url: str, upload_dir: str) -> bool:
    """Delete a stored photo; an already missing file is not an error."""
    path = photo_path(photo_url, upload_dir)
    if not path:
        return False
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True
