from __future__ import annotations

from markdown_it import MarkdownIt

_MD_PARSER: MarkdownIt | None = None


def _build_markdown_parser() -> MarkdownIt:
    # Raw HTML in model output is escaped, never passed through.
    md = MarkdownIt("commonmark", {"html": False, "breaks": True, "linkify": False})
    md.enable("table")
    md.enable("strikethrough")
    return md


def _get_markdown_parser() -> MarkdownIt:
    global _MD_PARSER
    if _MD_PARSER is None:
        _MD_PARSER = _build_markdown_parser()
    return _MD_PARSER


def to_html(markdown: str | None) -> str:
    if not markdown or not markdown.strip():
        return ""
    return _get_markdown_parser().render(markdown)
