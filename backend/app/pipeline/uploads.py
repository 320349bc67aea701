"""Validation for uploaded comic images."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class UploadedImage:
    filename: str
    content_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def validate_image_uploads(files: list[UploadedImage], max_files: int, max_bytes: int) -> list[str]:
    """Return human-readable problems with the upload; empty when acceptable."""
    if not files:
        return ["No files uploaded"]

    errors: list[str] = []
    if len(files) > max_files:
        errors.append(f"Maximum {max_files} images allowed")

    max_mb = max_bytes // (1024 * 1024)
    for index, upload in enumerate(files, start=1):
        if not upload.content_type.startswith("image/"):
            errors.append(f"File {index}: Not a valid image format")
        if upload.size_bytes > max_bytes:
            errors.append(f"File {index}: Exceeds {max_mb} MB limit")
    return errors
