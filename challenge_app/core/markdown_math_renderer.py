"""Markdown + LaTeX rendering for frozen question content.

Question and explanation text is stored as markdown with ``$...$`` math and
rendered to HTML fragments when a challenge is served. Math is typeset on the
client by MathJax, so fragments keep the TeX delimiters untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str | None) -> str | None:
        """Render a markdown string into an HTML fragment; blank input gives ``None``."""
        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return None
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str | None) -> str:
        """Render short content such as an option label without a wrapping paragraph."""
        return self._markdown.renderInline((markdown_text or "").strip())


renderer = MarkdownMathRenderer()
# MarkdownIt is safe for concurrent read-only renders, so the API shares one instance.
