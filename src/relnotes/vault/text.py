"""Markdown to plain text cleaning for embedding input.

Cleaning runs in a fixed order:
  1. strip front matter (``---`` or ``+++`` fenced) and blank lines
  2. unwrap wiki links: ``[[note]]`` and ``[[note|alias]]`` become ``note``
  3. flatten the first table into ``"header: cell, ..."`` sentences
  4. strip remaining markdown syntax

Pure regex; no markdown parser is involved.
"""

from __future__ import annotations

import re

_FRONT_MATTER_RE = re.compile(r"^(---[\s\S]*?---|\+\+\+[\s\S]*?\+\+\+)\s*", re.MULTILINE)
_BLANK_LINE_RE = re.compile(r"^\s*$", re.MULTILINE)
_WIKI_LINK_RE = re.compile(r"\[\[([^\]|]+)(\|[^\]]+)?\]\]")

# Markdown syntax, applied in order
_HR_RE = re.compile(r"^[ \t]*([-*_][ \t]*){3,}$", re.MULTILINE)
_LIST_MARKER_RE = re.compile(r"^([ \t]*)([*\-+]|\d+\.)[ \t]+", re.MULTILINE)
_SETEXT_RE = re.compile(r"\n={2,}")
_FENCE_RE = re.compile(r"~{3}.*\n|`{3}.*\n?")
_HTML_TAG_RE = re.compile(r"<[^>]*>")
_STRIKE_RE = re.compile(r"~~")
_HEADING_RE = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+(.*?)[ \t]*#*[ \t]*$", re.MULTILINE)
_FOOTNOTE_REF_RE = re.compile(r"\[\^.+?\](: .*?$)?", re.MULTILINE)
_FOOTNOTE_DEF_RE = re.compile(r"\s{0,2}\[.*?\]: .*?$", re.MULTILINE)
_IMAGE_RE = re.compile(r"!\[(.*?)\][\[(].*?[\])]")
_LINK_RE = re.compile(r"\[([^\]]*?)\][\[(].*?[\])]")
_BLOCKQUOTE_RE = re.compile(r"^(\n)?\s{0,3}>\s?", re.MULTILINE)
_REF_LINK_RE = re.compile(r"^\s{1,2}\[(.*?)\]: (\S+)( \".*?\")?\s*$", re.MULTILINE)
_EMPHASIS_RE = re.compile(r"([*_]{1,3})(\S.*?\S?)\1")
_INLINE_CODE_RE = re.compile(r"`(.+?)`")
_EXTRA_NEWLINES_RE = re.compile(r"\n{2,}")


def remove_front_matter(markdown: str) -> str:
    text = _FRONT_MATTER_RE.sub("", markdown, count=1)
    return _BLANK_LINE_RE.sub("", text).strip()


def unwrap_wiki_links(markdown: str) -> str:
    return _WIKI_LINK_RE.sub(r"\1", markdown)


def _split_cells(line: str) -> list[str]:
    return [cell.strip() for cell in line.split("|") if cell.strip()]


def table_to_sentences(markdown: str) -> str:
    """Replace a markdown table with one sentence per row.

    ``| Name | Age |`` rows become ``"Name: Alice, Age: 30. Name: Bob, Age: 25"``.
    Only lines containing ``|`` are considered, and the second such line must
    be a separator row.
    """
    table_lines = [line for line in markdown.split("\n") if "|" in line]
    if len(table_lines) < 2:
        return markdown
    header_line, separator_line, *data_lines = table_lines
    if "-" not in separator_line:
        return markdown

    headers = _split_cells(header_line)
    rows = [_split_cells(line) for line in data_lines]
    sentences = ". ".join(
        ", ".join(f"{h}: {row[i] if i < len(row) else ''}" for i, h in enumerate(headers))
        for row in rows
    )
    return markdown.replace("\n".join(table_lines), sentences, 1)


def strip_markdown(markdown: str) -> str:
    """Remove markdown syntax, keeping link text and dropping image alt text."""
    text = _HR_RE.sub("", markdown)
    text = _LIST_MARKER_RE.sub(r"\1", text)
    text = _SETEXT_RE.sub("\n", text)
    text = _FENCE_RE.sub("", text)
    text = _HTML_TAG_RE.sub("", text)
    text = _STRIKE_RE.sub("", text)
    text = _HEADING_RE.sub(r"\1", text)
    text = _FOOTNOTE_REF_RE.sub("", text)
    text = _FOOTNOTE_DEF_RE.sub("", text)
    text = _IMAGE_RE.sub("", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _BLOCKQUOTE_RE.sub(r"\1", text)
    text = _REF_LINK_RE.sub("", text)
    # Emphasis can nest (***x*** or **_x_**); two passes unwrap it
    for _ in range(2):
        text = _EMPHASIS_RE.sub(r"\2", text)
    text = _INLINE_CODE_RE.sub(r"\1", text)
    return _EXTRA_NEWLINES_RE.sub("\n\n", text)


def clean_markdown_to_plain_text(markdown: str) -> str:
    """Clean a note's markdown into the plain text that gets embedded."""
    text = markdown
    for step in (remove_front_matter, unwrap_wiki_links, table_to_sentences, strip_markdown):
        text = step(text)
    return text.strip()
