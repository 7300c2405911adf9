"""Attachment validation and inline base64 encoding."""

import base64
import mimetypes
from pathlib import Path

from .errors import ValidationError
from .logging_config import get_logger
from .models import Attachment

logger = get_logger(__name__)

MAX_ATTACHMENT_BYTES = 3 * 1024 * 1024  # 3 MB


def is_supported_type(mime_type: str) -> bool:
    """Only images and PDFs are accepted."""
    return mime_type.startswith("image/") or mime_type == "application/pdf"


def is_within_size_limit(size: int, limit: int = MAX_ATTACHMENT_BYTES) -> bool:
    return size <= limit


def encode_attachment(name: str, mime_type: str, data: bytes) -> Attachment:
    """Validate raw file bytes and wrap them as an inline Attachment."""
    if not is_supported_type(mime_type):
        raise ValidationError(
            f"File type not supported: {name}. Only images and PDFs are allowed."
        )
    if not is_within_size_limit(len(data)):
        raise ValidationError(
            f"File too large: {name}. "
            f"Maximum size is {round(MAX_ATTACHMENT_BYTES / (1024 * 1024))}MB."
        )

    return Attachment(
        name=name,
        mime_type=mime_type,
        size_bytes=len(data),
        data=base64.b64encode(data).decode("ascii"),
    )


def decode_attachment(attachment: Attachment) -> bytes:
    return base64.b64decode(attachment.data)


def load_attachment(path: str | Path) -> Attachment:
    """Read a file from disk and encode it; the MIME type comes from the name."""
    path = Path(path)
    mime_type, _ = mimetypes.guess_type(path.name)
    mime_type = mime_type or "application/octet-stream"

    # Reject on type/size before reading the whole file
    if not is_supported_type(mime_type):
        raise ValidationError(
            f"File type not supported: {path.name}. Only images and PDFs are allowed."
        )
    if not is_within_size_limit(path.stat().st_size):
        raise ValidationError(
            f"File too large: {path.name}. "
            f"Maximum size is {round(MAX_ATTACHMENT_BYTES / (1024 * 1024))}MB."
        )

    return encode_attachment(path.name, mime_type, path.read_bytes())


def load_attachments(paths: list[str | Path]) -> tuple[list[Attachment], list[str]]:
    """
    Encode every acceptable file, collecting one error message per rejected file.

    Returns:
        (accepted attachments, user-visible error messages)
    """
    accepted: list[Attachment] = []
    errors: list[str] = []

    for path in paths:
        try:
            accepted.append(load_attachment(path))
        except ValidationError as e:
            errors.append(str(e))
        except OSError as e:
            logger.error(f"Error reading file {path}: {e}")
            errors.append(f"Failed to read file: {Path(path).name}")

    return accepted, errors
