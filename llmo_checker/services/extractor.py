"""
HTML content extraction.
Reduces raw HTML to a bounded text digest for LLM analysis.
"""

import re
from typing import List

from bs4 import BeautifulSoup, CData, NavigableString, Tag
import structlog

from ..core.config import settings
from ..models.schemas import ExtractedContent, truncate

logger = structlog.get_logger()

ENTITY_RE = re.compile(r"&[a-zA-Z0-9#]+;")
TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")
HEADING_RE = re.compile(r"^h[1-6]$")
DESCRIPTION_RE = re.compile(r"^description$", re.IGNORECASE)

REMOVED_TAGS = ["script", "style"]

# (opening marker, closing marker) per tag for the structure-preserving digest.
STRUCTURE_MARKERS = {
    **{f"h{n}": (f"\n[H{n} heading] ", "\n") for n in range(1, 7)},
    "ul": ("\n[List start]\n", "[List end]\n"),
    "ol": ("\n[Numbered list start]\n", "[Numbered list end]\n"),
    "li": ("• ", "\n"),
    "article": ("\n[Article start]\n", "\n[Article end]\n"),
    "section": ("\n[Section start]\n", "\n[Section end]\n"),
    "nav": ("\n[Navigation]\n", "\n"),
    "header": ("\n[Header start]\n", "\n[Header end]\n"),
    "footer": ("\n[Footer start]\n", "\n[Footer end]\n"),
    "main": ("\n[Main content start]\n", "\n[Main content end]\n"),
    "aside": ("\n[Sidebar start]\n", "\n[Sidebar end]\n"),
    "p": ("\n", "\n"),
    "strong": ("**", "**"),
    "em": ("*", "*"),
    "a": ("[Link: ", "]"),
    "table": ("\n[Table start]\n", "\n[Table end]\n"),
    "tr": ("\n[Row]", ""),
    "th": (" [Header cell] ", " | "),
    "td": (" [Cell] ", " | "),
}
DEFAULT_MARKERS = (" ", " ")

INLINE_SPACE_RE = re.compile(r"[^\S\n]+")
SPACE_BEFORE_NEWLINE_RE = re.compile(r"[^\S\n]+\n")
SPACE_AFTER_NEWLINE_RE = re.compile(r"\n[^\S\n]+")
EXCESS_NEWLINES_RE = re.compile(r"\n{4,}")


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_RE.sub(" ", text).strip()


def plain_text_strip(html: str) -> str:
    """Last-resort digest: drop tags and collapse whitespace."""
    return collapse_whitespace(TAG_RE.sub(" ", html or ""))


class ContentExtractor:
    """Turns HTML into the digest handed to the language model."""

    def __init__(
        self,
        summary_max_length: int = settings.SUMMARY_MAX_LENGTH,
        structured_max_length: int = settings.STRUCTURED_MAX_LENGTH,
    ):
        self.summary_max_length = summary_max_length
        self.structured_max_length = structured_max_length

    def extract(self, html: str) -> ExtractedContent:
        """
        Extract title, description, headings and body text.

        Never raises: on any parsing problem the result degrades to a
        tag-stripped body text.
        """
        try:
            return self._extract(html)
        except Exception as e:
            logger.warning("extraction_degraded", variant="summary", error=str(e))
            return ExtractedContent(body_text=plain_text_strip(html))

    def summarize(self, html: str) -> str:
        """Labeled summary capped at ``summary_max_length``."""
        return self.extract(html).render(self.summary_max_length)

    def structured(self, html: str) -> str:
        """
        Structure-preserving digest: structural tags become bracketed markers
        so the model can infer headings, lists, sections and tables.
        """
        try:
            text = self._structured(html)
        except Exception as e:
            logger.warning("extraction_degraded", variant="structured", error=str(e))
            text = plain_text_strip(html)
        return truncate(text, self.structured_max_length)

    def digest(self, html: str, mode: str = "summary") -> str:
        if mode == "structured":
            return self.structured(html)
        return self.summarize(html)

    def _extract(self, html: str) -> ExtractedContent:
        soup = BeautifulSoup(html, "html.parser")

        title_tag = soup.find("title")
        title = collapse_whitespace(title_tag.get_text()) if title_tag else ""

        meta_desc = soup.find("meta", attrs={"name": DESCRIPTION_RE})
        description = collapse_whitespace(meta_desc.get("content") or "") if meta_desc else ""

        headings = []
        for heading in soup.find_all(HEADING_RE):
            text = collapse_whitespace(heading.get_text(" "))
            if text:
                headings.append(text)

        # Entities are blanked in the source so they collapse like tags do.
        body_soup = BeautifulSoup(ENTITY_RE.sub(" ", html), "html.parser")
        for element in body_soup(REMOVED_TAGS):
            element.decompose()
        body_text = collapse_whitespace(body_soup.get_text(" "))

        return ExtractedContent(
            title=title,
            description=description,
            headings=headings,
            body_text=body_text,
        )

    def _structured(self, html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        out: List[str] = []
        closers: List[str] = []
        stack = [iter(soup.children)]

        # Iterative walk: deeply nested markup must not hit the recursion limit.
        while stack:
            node = next(stack[-1], None)
            if node is None:
                stack.pop()
                if closers:
                    out.append(closers.pop())
                continue

            if isinstance(node, NavigableString):
                # Comments, doctypes and processing instructions are skipped.
                if type(node) in (NavigableString, CData):
                    out.append(str(node))
                continue

            if not isinstance(node, Tag) or node.name in REMOVED_TAGS:
                continue

            if node.name == "img":
                alt = (node.get("alt") or "").strip()
                out.append(f"[Image: {alt}]" if alt else "[Image: no alt text]")
                continue
            if node.name == "br":
                out.append("\n")
                continue

            opening, closing = STRUCTURE_MARKERS.get(node.name, DEFAULT_MARKERS)
            out.append(opening)
            closers.append(closing)
            stack.append(iter(node.children))

        return self._normalize_structured("".join(out))

    @staticmethod
    def _normalize_structured(text: str) -> str:
        text = INLINE_SPACE_RE.sub(" ", text)
        text = SPACE_AFTER_NEWLINE_RE.sub("\n", text)
        text = SPACE_BEFORE_NEWLINE_RE.sub("\n", text)
        text = EXCESS_NEWLINES_RE.sub("\n\n\n", text)
        return text.strip()
