"""
Document payload assembly for multimodal model calls.

Builds the ordered content parts ``[text, *(image | file)]`` of the single
user message sent to the provider. Whether a PDF travels as one native
file part or as rasterized page images is decided once, from the
provider's capabilities.
"""

import logging
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel

from ...models import Provider

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


@dataclass(frozen=True)
class ProviderCapability:
    """What a provider can consume besides text and images."""

    supports_native_file: bool = False


# The demo provider is served through OpenRouter.
PROVIDER_CAPABILITIES: dict[Provider, ProviderCapability] = {
    Provider.GOOGLE: ProviderCapability(supports_native_file=False),
    Provider.OPENROUTER: ProviderCapability(supports_native_file=True),
    Provider.DEMO: ProviderCapability(supports_native_file=True),
}


def get_capability(provider: Provider) -> ProviderCapability:
    return PROVIDER_CAPABILITIES.get(provider, ProviderCapability())


# =============================================================================
# Content Parts
# =============================================================================


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str

    def to_message(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


class ImagePart(BaseModel):
    """One image, as a data URL."""

    type: Literal["image"] = "image"
    image: str

    def to_message(self) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.image}}


class FilePart(BaseModel):
    """A whole original file (e.g. a PDF) for providers with native support."""

    type: Literal["file"] = "file"
    data: str
    media_type: str
    filename: str

    def to_message(self) -> dict[str, Any]:
        return {
            "type": "file",
            "file": {"filename": self.filename, "file_data": self.data},
        }


# =============================================================================
# Helpers
# =============================================================================


def extract_base64(data: str) -> str:
    """Strip the ``data:<mime>;base64,`` prefix of a data URL, if any."""
    if data.startswith("data:"):
        _, _, payload = data.partition(",")
        return payload
    return data


def to_data_url(data: str, mime_type: str) -> str:
    """Return ``data`` as a data URL, adding a prefix to bare base64."""
    if data.startswith("data:"):
        return data
    return f"data:{mime_type};base64,{data}"


# =============================================================================
# Assembly
# =============================================================================


def assemble_payload(
    prompt: str,
    document_data: str | list[str],
    mime_type: str,
    provider: Provider,
    filename: str | None = None,
) -> list[TextPart | ImagePart | FilePart]:
    """
    Build the content parts for a model call.

    Args:
        prompt: Instructions, always the first part.
        document_data: One data URL (or bare base64) per page image, or a
            single entry holding the whole file.
        mime_type: Declared mime type of the original upload.
        provider: Target provider.
        filename: Original filename; required for native file parts.

    Returns:
        ``[TextPart, FilePart]`` for a PDF sent natively, otherwise
        ``[TextPart, ImagePart, ...]`` with one image per entry in page order.
    """
    entries = [document_data] if isinstance(document_data, str) else list(document_data)
    parts: list[TextPart | ImagePart | FilePart] = [TextPart(text=prompt)]

    is_pdf = mime_type == PDF_MIME_TYPE
    if is_pdf and filename and get_capability(provider).supports_native_file and entries:
        parts.append(
            FilePart(
                data=f"data:{mime_type};base64,{extract_base64(entries[0])}",
                media_type=mime_type,
                filename=filename,
            )
        )
        logger.info("Assembled native file payload for %s (%s)", filename, provider.value)
        return parts

    image_mime = mime_type if mime_type.startswith("image/") else "image/png"
    for entry in entries:
        parts.append(ImagePart(image=to_data_url(entry, image_mime)))

    logger.info("Assembled image payload: %d page image(s) for %s", len(entries), provider.value)
    return parts


def to_messages(parts: list[TextPart | ImagePart | FilePart]) -> list[dict[str, Any]]:
    """Wrap content parts into the single user message of a chat request."""
    return [{"role": "user", "content": [part.to_message() for part in parts]}]
