"""Derive the visitor-facing view from the owner's content record."""

from __future__ import annotations

from typing import TYPE_CHECKING

from foundas.rendering.frontmatter import split_front_matter
from foundas.rendering.renderer import into_document, render_markdown
from foundas.schemas.content import ContentType, PublishedView

if TYPE_CHECKING:
    from collections.abc import Callable

    from foundas.schemas.content import ContentRecord, RawUpload


def render_page(markdown: str, render: Callable[[str], str] = render_markdown) -> str:
    """Render a markdown page with optional front matter into a full document."""
    attributes, body = split_front_matter(markdown)
    return into_document(render(body), attributes)


def derive_view(
    record: ContentRecord,
    upload: RawUpload | None = None,
    render: Callable[[str], str] = render_markdown,
) -> PublishedView:
    """Compute what visitors of the path will receive.

    HTML pages are served verbatim; markdown pages are rendered by *render*
    and wrapped in a document shell. Raw bytes come from *upload*, since the
    record itself holds no copy of the file.
    """
    if record.type is ContentType.REDIRECT:
        return PublishedView(redir=record.redir)
    if record.type is ContentType.HTML_PAGE:
        return PublishedView(html=record.html)
    if record.type is ContentType.MARKDOWN_PAGE:
        return PublishedView(html=render_page(record.md, render))
    if upload is None:
        raise ValueError("Raw bytes content needs an uploaded file")
    return PublishedView(mime=upload.mime, bytes_=upload.data)
