"""Pandoc-based markdown to HTML renderer and the published document shell."""

from __future__ import annotations

import html
import logging
import subprocess
from typing import Any

from foundas.rendering.frontmatter import page_title

logger = logging.getLogger(__name__)

PANDOC_INPUT_FORMAT = "gfm+hard_line_breaks"
PANDOC_TIMEOUT_SECONDS = 30


class RenderError(RuntimeError):
    """Raised when pandoc rendering fails (missing binary, timeout, parse error)."""


def render_markdown(markdown: str) -> str:
    """Render GitHub-flavored markdown to an HTML fragment.

    Single newlines become ``<br>``, matching what the editor previews.
    """
    try:
        result = subprocess.run(
            ["pandoc", "-f", PANDOC_INPUT_FORMAT, "-t", "html5", "--wrap=none"],
            input=markdown,
            capture_output=True,
            text=True,
            timeout=PANDOC_TIMEOUT_SECONDS,
            check=False,
        )
    except FileNotFoundError:
        raise RenderError(
            "Pandoc is not installed. Install pandoc to enable markdown rendering. "
            "See https://pandoc.org/installing.html"
        ) from None
    except subprocess.TimeoutExpired as exc:
        raise RenderError(f"Pandoc timed out after {exc.timeout}s") from exc
    if result.returncode != 0:
        logger.warning("Pandoc exited with code %d", result.returncode)
        raise RenderError(f"Pandoc failed: {result.stderr[:200]}")
    return result.stdout


def into_document(fragment: str, attributes: dict[str, Any]) -> str:
    """Wrap a rendered fragment in the minimal document served to visitors.

    The title comes from user-written front matter and is escaped before it
    lands in ``<head>``.
    """
    title = page_title(attributes)
    title_line = f"<title>{html.escape(title)}</title>" if title else ""
    return f"""<!DOCTYPE html>
<html>
<head>
<meta name="viewport" content="width=device-width, initial-scale=1.0"/>
<style>:root {{ color-scheme: dark light; }}</style>
{title_line}
</head>
<body>{fragment}</body>
</html>"""
