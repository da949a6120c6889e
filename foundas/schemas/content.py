"""Content schemas: the owner's private record and the visitor-facing view."""

from __future__ import annotations

import mimetypes
from enum import IntEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from pathlib import Path

DEFAULT_MIME = "application/octet-stream"


class ContentType(IntEnum):
    """What a path serves. The integer values are part of the wire format."""

    HTML_PAGE = 0
    MARKDOWN_PAGE = 1
    REDIRECT = 2
    BYTES = 3


class ContentRecord(BaseModel):
    """Private source of a path, only ever sent to its owner.

    One tag is active at a time, but the buffers of the other tags are kept so
    that switching back and forth does not lose unsaved text.
    """

    model_config = ConfigDict(frozen=True)

    type: ContentType = ContentType.REDIRECT
    md: str = ""
    html: str = ""
    redir: str = ""

    @property
    def source(self) -> str | None:
        """Editable source of the active tag; raw bytes have none."""
        if self.type is ContentType.REDIRECT:
            return self.redir
        if self.type is ContentType.MARKDOWN_PAGE:
            return self.md
        if self.type is ContentType.HTML_PAGE:
            return self.html
        return None

    def with_type(self, content_type: ContentType) -> ContentRecord:
        """Switch the active tag, keeping every buffer."""
        return self.model_copy(update={"type": ContentType(content_type)})

    def with_source(self, text: str) -> ContentRecord:
        """Replace the active tag's source."""
        if self.type is ContentType.REDIRECT:
            return self.model_copy(update={"redir": text})
        if self.type is ContentType.MARKDOWN_PAGE:
            return self.model_copy(update={"md": text})
        if self.type is ContentType.HTML_PAGE:
            return self.model_copy(update={"html": text})
        raise ValueError("Raw bytes content has no editable source")

    def to_wire(self) -> dict[str, Any]:
        return {"type": int(self.type), "md": self.md, "html": self.html, "redir": self.redir}

    @classmethod
    def from_wire(cls, data: object) -> ContentRecord:
        """Build a record from a decoded payload. Raises ``pydantic.ValidationError``."""
        return cls.model_validate(data)


class RawUpload(BaseModel):
    """A file to publish as raw bytes."""

    model_config = ConfigDict(frozen=True)

    mime: str = DEFAULT_MIME
    data: bytes

    @classmethod
    def from_path(cls, path: Path, mime: str | None = None, max_bytes: int = 1024 * 1024) -> RawUpload:
        """Read *path*, refusing files larger than *max_bytes*."""
        size = path.stat().st_size
        if size > max_bytes:
            raise ValueError(f"File too large ({size} bytes, max {max_bytes})")
        if mime is None:
            mime = mimetypes.guess_type(path.name)[0] or DEFAULT_MIME
        return cls(mime=mime, data=path.read_bytes())


class PublishedView(BaseModel):
    """The artifact served to visitors: a redirect, an HTML document, or raw bytes."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    redir: str | None = None
    html: str | None = None
    mime: str | None = None
    bytes_: bytes | None = Field(default=None, alias="bytes")

    @model_validator(mode="after")
    def _exactly_one_kind(self) -> PublishedView:
        kinds = [
            self.redir is not None,
            self.html is not None,
            self.mime is not None or self.bytes_ is not None,
        ]
        if sum(kinds) != 1:
            raise ValueError("A published view is exactly one of redirect, html or bytes")
        if (self.mime is None) != (self.bytes_ is None):
            raise ValueError("Raw bytes need both mime and bytes")
        return self

    def to_wire(self) -> dict[str, Any]:
        """Wire map holding only the keys that are set."""
        return self.model_dump(by_alias=True, exclude_none=True)
