"""Tests for front matter extraction."""

from __future__ import annotations

import pytest

from foundas.rendering.frontmatter import page_title, split_front_matter


class TestSplitFrontMatter:
    def test_extracts_attributes_and_body(self) -> None:
        attributes, body = split_front_matter("---\ntitle: Page title\n---\n# Heading\n")
        assert attributes == {"title": "Page title"}
        assert body == "# Heading\n"

    def test_plain_markdown_has_no_attributes(self) -> None:
        attributes, body = split_front_matter("# Just markdown")
        assert attributes == {}
        assert body == "# Just markdown"

    def test_leading_indented_code_is_kept(self) -> None:
        assert split_front_matter("    x = 1\n") == ({}, "    x = 1\n")

    def test_surrounding_whitespace_is_kept(self) -> None:
        text = "\n\nParagraph  \n\n"
        assert split_front_matter(text) == ({}, text)

    def test_body_after_front_matter_keeps_indentation(self) -> None:
        _, body = split_front_matter("---\ntitle: Code\n---\n    x = 1\n")
        assert body == "    x = 1\n"

    def test_unclosed_fence_is_kept_as_text(self) -> None:
        text = "---\ntitle: draft\n"
        assert split_front_matter(text) == ({}, text)

    def test_empty_text(self) -> None:
        assert split_front_matter("") == ({}, "")

    def test_malformed_yaml_is_kept_as_text(self) -> None:
        text = "---\ntitle: [unclosed\n---\nbody"
        attributes, body = split_front_matter(text)
        assert attributes == {}
        assert body == text


class TestPageTitle:
    def test_missing_title(self) -> None:
        assert page_title({}) is None

    def test_empty_title(self) -> None:
        assert page_title({"title": ""}) is None

    @pytest.mark.parametrize("value", [0, False, [], None])
    def test_falsy_title(self, value: object) -> None:
        assert page_title({"title": value}) is None

    def test_non_string_title_is_stringified(self) -> None:
        assert page_title({"title": 2026}) == "2026"
