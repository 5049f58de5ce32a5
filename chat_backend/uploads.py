# =============================================================================
# Attachment Upload
# -----------------------------------------------------------------------------
# Validation trusts the declared size and content type; there is no content
# sniffing, deduplication or scanning.
# =============================================================================

import os
from dataclasses import dataclass
from typing import List, Optional
from uuid import uuid4

from chat_backend.config import MIB, Settings


@dataclass(frozen=True)
class StoredUpload:
    url: str # public path, usable inside a [FILE: ...] marker
    pathname: str
    content_type: str

    def as_dict(self) -> dict:
        return {"url": self.url, "pathname": self.pathname, "contentType": self.content_type}


def _human_size(limit: int) -> str:
    if limit >= MIB:
        return f"{limit // MIB}MB"
    return f"{max(limit // 1024, 1)}KB"


def validate_upload(size: int, content_type: Optional[str], settings: Settings) -> List[str]:
    """Return the validation errors for a declared upload (empty when accepted)."""
    errors = []
    if size > settings.max_upload_bytes:
        errors.append(f"File size should be less than {_human_size(settings.max_upload_bytes)}")
    if content_type not in settings.allowed_upload_types:
        errors.append("File type should be JPEG, PNG, or PDF")
    return errors


def unique_filename(original_filename: Optional[str]) -> str:
    extension = ""
    if original_filename and "." in original_filename:
        extension = original_filename.rsplit(".", 1)[-1].lower()
    return f"{uuid4()}.{extension}" if extension else str(uuid4())


def store_upload(data: bytes, original_filename: Optional[str], content_type: str, settings: Settings) -> StoredUpload:
    filename = unique_filename(original_filename)

    os.makedirs(settings.upload_dir, exist_ok=True)
    with open(os.path.join(settings.upload_dir, filename), "wb") as f:
        f.write(data)

    return StoredUpload(
        url=f"/{settings.upload_subdir}/{filename}",
        pathname=filename,
        content_type=content_type,
    )
