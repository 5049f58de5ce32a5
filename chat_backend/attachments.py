# =============================================================================
# Attachment Ingestion
# -----------------------------------------------------------------------------
# A user message may reference a previously uploaded file with an inline
# marker such as `[FILE: /uploads/<name>.pdf]`. PDF attachments are turned
# into an extraction prompt for the model; every other type is passed through.
#
# Ingestion never raises: attachment problems must not block the ability to
# chat, so any failure falls back to the original message.
# =============================================================================

import mimetypes
import os
import re
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from langchain_community.document_loaders import PyPDFLoader # Page-by-page PDF text loader (pypdf)
from loguru import logger

from chat_backend.errors import AttachmentProcessingFailed
from chat_backend.prompts import INVOICE_EXTRACTION_PROMPT
from chat_backend.schemas import ChatMessage
from chat_backend.store import utcnow


FILE_MARKER = re.compile(r"\[FILE: (.*?)\]")
PAGE_SEPARATOR = "\n"


@dataclass(frozen=True)
class IngestionResult:
    """Always a usable message; `error` is set when ingestion fell back."""

    message: ChatMessage
    substituted: bool = False
    error: Optional[str] = None


def find_file_marker(content: str) -> Optional[str]:
    match = FILE_MARKER.search(content or "")
    return match.group(1) if match else None


def extract_pdf_text(path: str) -> str:
    """Concatenate the text of every page, in page order."""
    pages = PyPDFLoader(path).load()
    # Sanitize extracted content
    return PAGE_SEPARATOR.join((page.page_content or "").replace("\x00", "") for page in pages)


class AttachmentIngestor:
    def __init__(self, public_dir: str):
        self.public_dir = os.path.abspath(public_dir)

    def resolve_path(self, relative_path: str) -> str:
        path = os.path.abspath(os.path.join(self.public_dir, relative_path.strip().lstrip("/\\")))
        if os.path.commonpath([path, self.public_dir]) != self.public_dir:
            raise AttachmentProcessingFailed(f"Attachment path escapes public root: {relative_path}")
        return path

    def ingest(self, message: ChatMessage) -> IngestionResult:
        relative_path = find_file_marker(message.content)
        if relative_path is None:
            return IngestionResult(message=message)

        logger.info(f"Found file attachment: {relative_path}")
        try:
            return self._ingest_file(message, relative_path)
        except Exception as e:
            # Continue with the original message if processing fails
            logger.warning(f"Attachment processing failed for {relative_path}: {e!r}")
            return IngestionResult(message=message, error=str(e) or type(e).__name__)

    def _ingest_file(self, message: ChatMessage, relative_path: str) -> IngestionResult:
        path = self.resolve_path(relative_path)
        if not os.path.isfile(path):
            raise AttachmentProcessingFailed(f"Attachment not found: {relative_path}")

        content_type, _ = mimetypes.guess_type(path)
        if content_type != "application/pdf":
            logger.info(
                f"Attachment {relative_path} ({content_type or 'unknown type'}, "
                f"{os.path.getsize(path)} bytes) passed through"
            )
            return IngestionResult(message=message)

        text = extract_pdf_text(path)
        logger.info(f"PDF parsed successfully: {relative_path} ({len(text)} characters)")

        pdf_message = ChatMessage(
            id=str(uuid4()),
            role="user",
            content=INVOICE_EXTRACTION_PROMPT.format(text=text),
            created_at=utcnow(),
        )
        return IngestionResult(message=pdf_message, substituted=True)
