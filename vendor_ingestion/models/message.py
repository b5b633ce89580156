"""Pydantic models for inbound vendor documents."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RawMessage(BaseModel):
    """An inbound vendor message exactly as received.

    Immutable: nothing in the pipeline mutates a message once built.
    """

    sender: str = Field(default="", description="From header, e.g. 'Safilo <noreply@safilo.com>'")
    subject: str = Field(default="")
    html: Optional[str] = Field(default=None, description="HTML body")
    plain_text: Optional[str] = Field(default=None, description="Plain-text body")
    attachment: Optional[bytes] = Field(default=None, description="PDF attachment bytes")
    attachment_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def body_text(self) -> str:
        """Body used for content signals: plain text when present, else HTML."""
        return self.plain_text or self.html or ""


class DocumentContent(BaseModel):
    """Raw content handed to a document parser."""

    html: Optional[str] = None
    plain_text: Optional[str] = None
    pdf: Optional[bytes] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_message(cls, message: RawMessage) -> "DocumentContent":
        return cls(html=message.html, plain_text=message.plain_text, pdf=message.attachment)
