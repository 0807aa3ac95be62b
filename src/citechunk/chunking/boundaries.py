"""
Line classification, document structure parsing and paragraph splitting.
"""

import re
from enum import Enum
from typing import Callable, List, NamedTuple, Optional

# Compiled line matchers. Fence lines take precedence over headings so a
# "# comment" inside a shell block never opens a section.
HEADING_RE = re.compile(r"^(#{1,6})\s+(\S.*)$")
FENCE_RE = re.compile(r"^```([\w+#.-]*)\s*$")
LIST_ITEM_RE = re.compile(r"^(?:[-*+]|\d+\.)\s")

_FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`[^`\n]+`")
_LIST_LINE_RE = re.compile(r"^(?:[-*+]|\d+\.)\s", re.MULTILINE)
_FENCE_LANGUAGE_RE = re.compile(r"^```([\w+#.-]+)\s*$", re.MULTILINE)


class LineKind(Enum):
    """Classification of a single source line."""

    HEADING = "heading"
    FENCE = "fence"
    BLANK = "blank"
    TEXT = "text"


class ParagraphKind(Enum):
    TEXT = "text"
    CODE = "code"


class Section(NamedTuple):
    """A heading and the text up to the next heading of any level."""

    level: int
    title: str
    anchor: str
    body: str
    start_line: int
    end_line: int


class DocumentStructure(NamedTuple):
    preamble: str
    sections: List[Section]


class Paragraph(NamedTuple):
    """A blank-line delimited block; code paragraphs are atomic."""

    content: str
    kind: ParagraphKind
    line_start: int
    line_end: int
    terminated: bool = True


def classify_line(line: str, in_fence: bool = False) -> LineKind:
    """Classify a line; inside a fence only the fence delimiter is special."""
    if FENCE_RE.match(line):
        return LineKind.FENCE
    if in_fence:
        return LineKind.TEXT
    if not line.strip():
        return LineKind.BLANK
    if HEADING_RE.match(line):
        return LineKind.HEADING
    return LineKind.TEXT


def create_anchor(title: str) -> str:
    """Create a URL-safe slug from a heading title."""
    anchor = title.lower()
    anchor = re.sub(r"[^\w\s-]", "", anchor)
    anchor = re.sub(r"\s+", "-", anchor)
    anchor = re.sub(r"-+", "-", anchor)
    return anchor.strip()


def parse_structure(text: str, split_on_headings: bool = True) -> DocumentStructure:
    """
    Split a document into a preamble and a flat list of sections.

    Args:
        text: Document body
        split_on_headings: When False the whole document is preamble

    Returns:
        DocumentStructure with sections in source order. Section line
        numbers are 1-based; ``start_line`` is the heading line itself.
    """
    if not split_on_headings:
        return DocumentStructure(preamble=text, sections=[])

    lines = text.split("\n")

    preamble: List[str] = []
    sections: List[Section] = []
    current: Optional[dict] = None
    in_fence = False

    def close_current() -> None:
        if current is not None:
            sections.append(
                Section(
                    level=current["level"],
                    title=current["title"],
                    anchor=create_anchor(current["title"]),
                    body="\n".join(current["lines"]),
                    start_line=current["start_line"],
                    end_line=current["end_line"],
                )
            )

    for line_number, line in enumerate(lines, 1):
        kind = classify_line(line, in_fence)

        if kind is LineKind.HEADING:
            close_current()
            match = HEADING_RE.match(line)
            assert match is not None
            current = {
                "level": len(match.group(1)),
                "title": match.group(2).strip(),
                "lines": [],
                "start_line": line_number,
                "end_line": line_number,
            }
            continue

        if kind is LineKind.FENCE:
            in_fence = not in_fence

        if current is not None:
            current["lines"].append(line)
            current["end_line"] = line_number
        else:
            preamble.append(line)

    close_current()

    return DocumentStructure(preamble="\n".join(preamble), sections=sections)


def split_into_paragraphs(text: str, first_line: int = 1) -> List[Paragraph]:
    """
    Split a block of text on blank lines, keeping fenced code blocks whole.

    Args:
        text: Section body or preamble
        first_line: Document line number of the first line of ``text``

    Returns:
        Paragraphs in order. A fence left open at end of input yields a final
        code paragraph with ``terminated=False``.
    """
    paragraphs: List[Paragraph] = []
    current: List[str] = []
    current_start = first_line
    in_fence = False

    def flush(kind: ParagraphKind, end_line: int, terminated: bool = True) -> None:
        nonlocal current
        if current:
            paragraphs.append(
                Paragraph(
                    content="\n".join(current),
                    kind=kind,
                    line_start=current_start,
                    line_end=end_line,
                    terminated=terminated,
                )
            )
        current = []

    for offset, line in enumerate(text.split("\n")):
        line_number = first_line + offset
        kind = classify_line(line, in_fence)

        if kind is LineKind.FENCE:
            if not in_fence:
                # Opening fence closes any prose paragraph in progress
                flush(ParagraphKind.TEXT, line_number - 1)
                current = [line]
                current_start = line_number
                in_fence = True
            else:
                current.append(line)
                flush(ParagraphKind.CODE, line_number)
                in_fence = False
            continue

        if in_fence:
            current.append(line)
            continue

        if kind is LineKind.BLANK:
            flush(ParagraphKind.TEXT, line_number - 1)
            continue

        if not current:
            current_start = line_number
        current.append(line)

    last_line = first_line + text.count("\n")
    if in_fence:
        flush(ParagraphKind.CODE, last_line, terminated=False)
    else:
        flush(ParagraphKind.TEXT, last_line)

    return paragraphs


def is_code_block(text: str) -> bool:
    """True when the text is itself a fenced code block."""
    return text.startswith("```") and "\n```" in text


def is_list_block(text: str) -> bool:
    """True when every line is a list item or an indented continuation."""
    lines = text.split("\n")
    if not LIST_ITEM_RE.match(lines[0]):
        return False
    return all(LIST_ITEM_RE.match(line) or line[:1].isspace() for line in lines)


def has_code(text: str) -> bool:
    return bool(_FENCED_BLOCK_RE.search(text) or _INLINE_CODE_RE.search(text))


def has_list(text: str) -> bool:
    return bool(_LIST_LINE_RE.search(text))


def detect_languages(text: str) -> List[str]:
    """Distinct fence language tags in first-seen order."""
    languages: List[str] = []
    for match in _FENCE_LANGUAGE_RE.finditer(text):
        if match.group(1) not in languages:
            languages.append(match.group(1))
    return languages


def split_code_fence_by_lines(
    text: str, max_tokens: int, count_tokens: Callable[[str], int]
) -> List[str]:
    """Split a fenced block into line groups, each re-wrapped in fences.

    Never cuts mid-line; a single line longer than the cap stands alone.
    """
    lines = text.split("\n")
    opening = lines[0]
    body = lines[1:]
    if body and FENCE_RE.match(body[-1]):
        body = body[:-1]

    def wrap(group: List[str]) -> str:
        return "\n".join([opening, *group, "```"])

    pieces: List[str] = []
    current: List[str] = []
    for line in body:
        if current and count_tokens(wrap(current + [line])) > max_tokens:
            pieces.append(wrap(current))
            current = []
        current.append(line)

    if current or not pieces:
        pieces.append(wrap(current))

    return pieces
