"""Tests for deriving the published view from a content record."""

from __future__ import annotations

import pytest

from foundas.schemas.content import ContentRecord, ContentType, PublishedView, RawUpload
from foundas.services.view_service import derive_view, render_page
from tests.conftest import stub_render


class TestDeriveView:
    def test_redirect(self) -> None:
        record = ContentRecord(type=ContentType.REDIRECT, redir="https://example.com", md="x")
        assert derive_view(record, render=stub_render) == PublishedView(redir="https://example.com")

    def test_html_page_is_served_verbatim(self) -> None:
        record = ContentRecord(type=ContentType.HTML_PAGE, html="<script>ok()</script>")
        assert derive_view(record, render=stub_render).html == "<script>ok()</script>"

    def test_markdown_page_is_rendered_into_document(self) -> None:
        record = ContentRecord(type=ContentType.MARKDOWN_PAGE, md="hello")
        html = derive_view(record, render=stub_render).html
        assert html is not None
        assert html.startswith("<!DOCTYPE html>")
        assert "<body><p>hello</p></body>" in html
        assert "<title>" not in html

    def test_markdown_title_comes_from_front_matter(self) -> None:
        record = ContentRecord(
            type=ContentType.MARKDOWN_PAGE, md="---\ntitle: My Page\n---\nbody text\n"
        )
        html = derive_view(record, render=stub_render).html
        assert html is not None
        assert "<title>My Page</title>" in html
        assert "title:" not in html

    def test_markdown_title_is_escaped(self) -> None:
        md = '---\ntitle: "</title><script>alert(1)</script>"\n---\nx'
        record = ContentRecord(type=ContentType.MARKDOWN_PAGE, md=md)
        html = derive_view(record, render=stub_render).html
        assert html is not None
        assert "<script>" not in html
        assert "&lt;/title&gt;&lt;script&gt;alert(1)&lt;/script&gt;" in html

    def test_bytes_need_upload(self) -> None:
        with pytest.raises(ValueError, match="uploaded file"):
            derive_view(ContentRecord(type=ContentType.BYTES), render=stub_render)

    def test_bytes_come_from_upload(self) -> None:
        upload = RawUpload(mime="image/png", data=b"\x89PNG")
        view = derive_view(ContentRecord(type=ContentType.BYTES), upload, stub_render)
        assert view.to_wire() == {"mime": "image/png", "bytes": b"\x89PNG"}

    def test_derivation_is_repeatable(self) -> None:
        record = ContentRecord(type=ContentType.MARKDOWN_PAGE, md="---\ntitle: T\n---\nx")
        assert derive_view(record, render=stub_render) == derive_view(record, render=stub_render)


class TestRenderPage:
    def test_renderer_receives_body_without_front_matter(self) -> None:
        seen: list[str] = []

        def render(markdown: str) -> str:
            seen.append(markdown)
            return "<p>ok</p>"

        render_page("---\ntitle: T\n---\nBody", render)
        assert seen == ["Body"]
