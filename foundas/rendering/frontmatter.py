"""YAML front matter extraction for markdown pages."""

from __future__ import annotations

import logging
from typing import Any

import yaml
from frontmatter.default_handlers import YAMLHandler

logger = logging.getLogger(__name__)

_handler = YAMLHandler()


def split_front_matter(markdown: str) -> tuple[dict[str, Any], str]:
    """Split *markdown* into its front matter attributes and body.

    Text without a front matter block comes back unchanged with no attributes.
    Malformed YAML is treated as ordinary text so a half-typed header never
    breaks the preview.
    """
    if not _handler.detect(markdown):
        return {}, markdown
    try:
        raw, body = _handler.split(markdown)
        metadata = _handler.load(raw)
    except ValueError:
        # Opening fence without a closing one.
        return {}, markdown
    except yaml.YAMLError as exc:
        logger.debug("Ignoring malformed front matter: %s", exc)
        return {}, markdown
    if not isinstance(metadata, dict):
        metadata = {}
    # Drop the line break that ends the closing fence.
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    return dict(metadata), body


def page_title(attributes: dict[str, Any]) -> str | None:
    """Return the ``title`` attribute as text, or None when absent or falsy."""
    title = attributes.get("title")
    if not title:
        return None
    return str(title)
