"""
Document Ingestion Pipeline.

Downloads a candidate's CV from the messaging channel, re-encodes it for a
vision-capable model, and extracts a redacted partial profile.

Guarantees:
- Unsupported media types are rejected before any I/O
- Files larger than MAX_DOCUMENT_BYTES are rejected on the declared
  Content-Length, and aborted mid-transfer on the running byte count
- The whole download is bounded by DOWNLOAD_TIMEOUT_SECONDS of wall clock
- The temporary artifact is deleted on every exit path; a failed deletion
  is logged and never raised

Errors (all DocumentError subclasses, each mapped to its own message):
    UnsupportedMediaTypeError, DocumentTooLargeError, DownloadTimeoutError,
    DocumentTransportError, EmptyExtractionError
"""

import asyncio
import base64
import logging
import os
import re
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from src.common.config import Config
from src.common.error_handling import (
    DocumentTooLargeError,
    DocumentTransportError,
    DownloadTimeoutError,
    EmptyExtractionError,
    ExtractionError,
    UnsupportedMediaTypeError,
)
from src.common.logger import mask_identity
from src.common.schemas import ExtractionResult
from src.services.extraction_client import ExtractionClient

logger = logging.getLogger(__name__)

ALLOWED_MEDIA_TYPES: Dict[str, str] = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
}

DEFAULT_MEDIA_TYPE = "application/pdf"

DOCUMENT_EXTRACTION_SYSTEM = """You are a recruitment assistant reading a candidate's CV.

PRIVACY - IGNORE COMPLETELY and never copy into any field:
- personal identification numbers, passport or ID card numbers
- exact home address
- date of birth or age
- marital status, family or children
- medical or health information
- religious or political affiliation
- the photograph and anything inferred from it
- links to personal profiles or websites

EXTRACT:
- name (for addressing the candidate)
- education (highest level and field)
- experience: a summary with total years, the list of roles (company, role, duration),
  the most recent role, the main field of activity, and the countries/regions worked in
- hard skills: technical skills, equipment, software, certificates, driving licenses
- language proficiency mapped to CEFR (A1-C2): "fluent" -> C1, "native" -> C2,
  "intermediate" -> B1, "basic" -> A1

If a value is unclear or missing, use null. Do not guess."""

DOCUMENT_EXTRACTION_USER = "Extract the candidate profile from this CV."


@dataclass
class MediaReference:
    """Remote document attached to an inbound event."""
    url: str
    mime_type: str = DEFAULT_MEDIA_TYPE
    filename: Optional[str] = None

    @property
    def normalized_type(self) -> str:
        return (self.mime_type or DEFAULT_MEDIA_TYPE).split(";")[0].strip().lower()


def detect_media(payload: Optional[Dict[str, Any]]) -> Optional[MediaReference]:
    """
    Find a media descriptor in an inbound payload.

    Accepts nested {"media"|"document"|"image": {"url", "mime_type"}} shapes
    (camelCase keys too) and the flat MediaUrl0/MediaContentType0 form.
    The media type defaults to application/pdf when not declared.

    Returns:
        MediaReference, or None if the payload carries no media
    """
    if not payload:
        return None

    for key in ("media", "document", "image"):
        descriptor = payload.get(key)
        if isinstance(descriptor, dict):
            url = descriptor.get("url") or descriptor.get("link")
            if url:
                return MediaReference(
                    url=url,
                    mime_type=(
                        descriptor.get("mime_type")
                        or descriptor.get("mimeType")
                        or descriptor.get("content_type")
                        or DEFAULT_MEDIA_TYPE
                    ),
                    filename=descriptor.get("filename"),
                )

    url = payload.get("media_url") or payload.get("MediaUrl0")
    if url:
        return MediaReference(
            url=url,
            mime_type=payload.get("media_type") or payload.get("MediaContentType0") or DEFAULT_MEDIA_TYPE,
        )
    return None


class DocumentPipeline:
    """
    Download, re-encode and extract a CV.

    The HTTP transfer runs in a worker thread (asyncio.to_thread) so the
    event loop keeps serving other identities during the download.
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        client: ExtractionClient,
        max_bytes: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        temp_dir: Optional[str] = None,
        auth_token: Optional[str] = None,
    ):
        self.client = client
        self.max_bytes = max_bytes if max_bytes is not None else Config.MAX_DOCUMENT_BYTES
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else Config.DOWNLOAD_TIMEOUT_SECONDS
        )
        self.temp_dir = temp_dir or Config.DOCUMENT_TEMP_DIR
        self.auth_token = auth_token if auth_token is not None else Config.MEDIA_AUTH_TOKEN

    @property
    def max_megabytes(self) -> int:
        return max(1, self.max_bytes // (1024 * 1024))

    async def process(self, media: MediaReference, identity: str) -> ExtractionResult:
        """
        Run the full pipeline for one document.

        Args:
            media: Remote document reference
            identity: Channel identity (used for the artifact name and logs)

        Returns:
            Non-empty ExtractionResult

        Raises:
            DocumentError: One of the taxonomy subclasses
        """
        media_type = media.normalized_type
        if media_type not in ALLOWED_MEDIA_TYPES:
            logger.warning(f"Rejected document of type {media_type} from {mask_identity(identity)}")
            raise UnsupportedMediaTypeError(f"Unsupported media type: {media_type}")

        artifact = self._create_artifact(identity, ALLOWED_MEDIA_TYPES[media_type])
        try:
            size = await asyncio.to_thread(self._download, media.url, artifact)
            logger.info(f"Downloaded {size} bytes ({media_type}) for {mask_identity(identity)}")

            encoded = base64.b64encode(artifact.read_bytes()).decode("ascii")
            content = self._build_content(media_type, encoded, media.filename or artifact.name)

            try:
                result = await self.client.extract(
                    ExtractionResult,
                    system_prompt=DOCUMENT_EXTRACTION_SYSTEM,
                    user_content=content,
                    operation="document_extraction",
                )
            except ExtractionError as e:
                raise EmptyExtractionError(f"Extraction failed: {e}") from e

            if result.is_empty():
                raise EmptyExtractionError("No profile fields found in document")

            logger.info(
                f"Document extraction for {mask_identity(identity)}: "
                f"{sorted(result.populated_fields())} (confidence {result.confidence})"
            )
            return result
        finally:
            self._delete_artifact(artifact)

    def _create_artifact(self, identity: str, extension: str) -> Path:
        digits = re.sub(r"\D", "", identity or "") or "anon"
        try:
            fd, path = tempfile.mkstemp(prefix=f"cv_{digits}_", suffix=extension, dir=self.temp_dir)
        except OSError as e:
            logger.error(f"Cannot create document artifact in {self.temp_dir}: {e}")
            raise DocumentTransportError(f"Temporary storage unavailable: {e}") from e
        os.close(fd)
        return Path(path)

    def _delete_artifact(self, artifact: Path) -> None:
        try:
            artifact.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to delete document artifact {artifact.name}: {e}")

    def _download(self, url: str, destination: Path) -> int:
        """
        Stream a remote file to disk under the size and time budgets.

        Returns:
            Number of bytes written
        """
        headers = {"Authorization": f"Bearer {self.auth_token}"} if self.auth_token else {}
        deadline = time.monotonic() + self.timeout_seconds
        received = 0

        try:
            with requests.get(url, headers=headers, stream=True, timeout=self.timeout_seconds) as response:
                response.raise_for_status()

                declared = response.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    raise DocumentTooLargeError(
                        f"Declared size {declared} exceeds limit {self.max_bytes}"
                    )

                with open(destination, "wb") as handle:
                    for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                        if not chunk:
                            continue
                        received += len(chunk)
                        if received > self.max_bytes:
                            raise DocumentTooLargeError(
                                f"Transfer exceeded limit {self.max_bytes} bytes"
                            )
                        if time.monotonic() > deadline:
                            raise DownloadTimeoutError(
                                f"Download exceeded {self.timeout_seconds}s"
                            )
                        handle.write(chunk)
        except requests.exceptions.Timeout as e:
            raise DownloadTimeoutError(f"Download timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise DocumentTransportError(f"Download failed: {e}") from e

        if received == 0:
            raise DocumentTransportError("Downloaded file is empty")
        return received

    def _build_content(self, media_type: str, encoded: str, filename: str) -> List[dict]:
        """Build multimodal message blocks for the model."""
        text_block = {"type": "text", "text": DOCUMENT_EXTRACTION_USER}
        if media_type == "application/pdf":
            return [
                text_block,
                {
                    "type": "file",
                    "file": {
                        "filename": filename,
                        "file_data": f"data:application/pdf;base64,{encoded}",
                    },
                },
            ]

        data_type = "image/jpeg" if media_type == "image/jpg" else media_type
        return [
            text_block,
            {
                "type": "image_url",
                "image_url": {"url": f"data:{data_type};base64,{encoded}", "detail": "high"},
            },
        ]
