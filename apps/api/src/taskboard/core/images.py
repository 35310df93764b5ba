from __future__ import annotations

import base64
from typing import Optional, Protocol, Union

from fastapi import HTTPException, UploadFile

from taskboard.core.config import settings


class ImageStore(Protocol):
    def save(self, upload: UploadFile) -> str:
        """Persist an uploaded image and return the URL to store on the record."""
        ...


class DataUrlImageStore:
    """
    Keeps images inline: the stored URL is a data: URL of the upload.
    """

    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes

    def save(self, upload: UploadFile) -> str:
        raw = upload.file.read(self.max_bytes + 1)
        if len(raw) > self.max_bytes:
            raise HTTPException(status_code=400, detail="Image too large")

        mime_type = upload.content_type or "image/png"
        return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


def get_image_store() -> ImageStore:
    return DataUrlImageStore(max_bytes=settings.MAX_IMAGE_BYTES)


def resolve_image(store: ImageStore, image: Union[UploadFile, str, None], *, default: Optional[str] = "") -> Optional[str]:
    """
    Form image fields carry either a file upload or an already stored URL.
    """
    if image is None:
        return default
    if isinstance(image, str):
        return image
    return store.save(image)
