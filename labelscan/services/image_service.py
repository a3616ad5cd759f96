"""File handling for label images: storing uploads and preparing OCR payloads."""
import base64
import logging
import uuid
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from labelscan.config import settings

logger = logging.getLogger(__name__)


class ImageService:
    """Service for storing scan images and encoding them for OCR."""

    allowed_types = ["image/jpeg", "image/jpg", "image/png", "image/webp"]

    def __init__(self, upload_dir: Optional[str] = None, max_width: Optional[int] = None):
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        self.max_width = max_width or settings.image_max_width

    async def save_scan_image(self, file: UploadFile) -> str:
        """
        Save an uploaded label image to disk.

        Returns:
            Path to the saved file, used as the scan's image reference

        Raises:
            ValueError: If file type is invalid
        """
        if file.content_type not in self.allowed_types:
            raise ValueError(
                f"Invalid file type: {file.content_type}. Allowed: {self.allowed_types}"
            )

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        unique_id = str(uuid.uuid4())[:8]
        extension = Path(file.filename or "").suffix.lower() or ".jpg"
        file_path = self.upload_dir / f"{timestamp}_{unique_id}{extension}"

        contents = await file.read()
        with open(file_path, "wb") as f:
            f.write(contents)

        return str(file_path)

    def encode_for_ocr(self, image_ref: str) -> str:
        """
        Load an image, normalise it and return base64-encoded JPEG bytes.

        Applies EXIF orientation, flattens transparency onto white and
        downscales anything wider than max_width.

        Raises:
            ValueError: If the file is missing or not a readable image
        """
        path = Path(image_ref)
        if not path.exists():
            raise ValueError(f"Image not found: {image_ref}")

        try:
            with Image.open(path) as img:
                img = ImageOps.exif_transpose(img)
                if img.mode in ("RGBA", "LA", "P"):
                    img = img.convert("RGBA")
                    rgb_img = Image.new("RGB", img.size, (255, 255, 255))
                    rgb_img.paste(img, mask=img.split()[3])
                    img = rgb_img
                elif img.mode != "RGB":
                    img = img.convert("RGB")

                if img.width > self.max_width:
                    ratio = self.max_width / img.width
                    img = img.resize(
                        (self.max_width, int(img.height * ratio)), Image.Resampling.LANCZOS
                    )

                buffer = BytesIO()
                img.save(buffer, format="JPEG", quality=85, optimize=True)
        except UnidentifiedImageError as e:
            raise ValueError(f"Unsupported image: {image_ref}") from e
        except OSError as e:
            # Truncated or corrupt image data
            raise ValueError(f"Unreadable image: {image_ref}: {e}") from e

        return base64.standard_b64encode(buffer.getvalue()).decode("utf-8")

    def delete_file(self, file_path: str) -> bool:
        """
        Delete a stored image.

        Returns:
            True if deleted, False if file not found
        """
        try:
            path = Path(file_path)
            if path.exists():
                path.unlink()
                return True
            return False
        except OSError as e:
            logger.warning("Error deleting file %s: %s", file_path, e)
            return False


# Singleton instance
image_service = ImageService()
