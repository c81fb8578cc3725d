"""Markdown rendering for question prompts, options and explanations.

Architecture note:
    Quiz text is stored as markdown and rendered on the way out of the API, so
    the stored snapshot stays independent of any particular front end. Math
    markup (``$...$``) passes through untouched for the client to typeset.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts quiz markdown into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_block(self, markdown_text: str | None) -> str | None:
        """Render a prompt or explanation; empty input renders to None."""
        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return None
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render an option label without wrapping it in a paragraph."""
        return self._markdown.renderInline(markdown_text.strip())


renderer = MarkdownRenderer()
# MarkdownIt is safe to share for read-only renders, so the API server reuses
# this instance across requests.
