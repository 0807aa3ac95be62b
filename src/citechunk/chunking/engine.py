"""
Chunk assembly and finalization with stable, citation-friendly identifiers.
"""

from __future__ import annotations

import hashlib
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from ..core.models import ByteRange, Chunk, Document, LineRange, Profile
from .boundaries import (
    Paragraph,
    ParagraphKind,
    detect_languages,
    has_code,
    has_list,
    is_list_block,
    parse_structure,
    split_code_fence_by_lines,
    split_into_paragraphs,
)
from .profiles import PROFILES, estimate_tokens

EmitFn = Callable[..., None]

DOC_ID_LENGTH = 8
CHUNK_ID_LENGTH = 16
# "\n\n" between paragraphs, rounded up
SEPARATOR_TOKENS = 1


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_doc_id(path: str, content: str) -> str:
    """Document hash; any content change yields a new id."""
    return _sha256(path + content)[:DOC_ID_LENGTH]


def generate_chunk_id(doc_id: str, heading_path: Sequence[str], chunk_index: int) -> str:
    """Stable chunk id derived only from doc hash, heading path and index."""
    return _sha256(f"{doc_id}:{'/'.join(heading_path)}:{chunk_index}")[:CHUNK_ID_LENGTH]


class _LineOffsets:
    """UTF-8 byte offsets of each line start in the original document."""

    def __init__(self, content: str):
        self._starts = [0]
        self._lengths: List[int] = []
        for line in content.split("\n"):
            length = len(line.encode("utf-8"))
            self._lengths.append(length)
            self._starts.append(self._starts[-1] + length + 1)

    def start_of(self, line_number: int) -> int:
        index = min(max(line_number, 1), len(self._lengths)) - 1
        return self._starts[index]

    def end_of(self, line_number: int) -> int:
        index = min(max(line_number, 1), len(self._lengths)) - 1
        return self._starts[index] + self._lengths[index]


def _holds_flush(paragraph: Paragraph, profile: Profile) -> bool:
    """Atomic blocks defer the target flush to the following paragraph."""
    if paragraph.kind is ParagraphKind.CODE:
        return profile.preserve_code_blocks
    return profile.hold_lists and is_list_block(paragraph.content)


def _split_oversized(
    paragraphs: List[Paragraph], profile: Profile
) -> List[Paragraph]:
    """Break code paragraphs above max_tokens into fenced line groups."""
    result: List[Paragraph] = []
    for paragraph in paragraphs:
        if (
            paragraph.kind is not ParagraphKind.CODE
            or estimate_tokens(paragraph.content, profile) <= profile.max_tokens
        ):
            result.append(paragraph)
            continue

        pieces = split_code_fence_by_lines(
            paragraph.content,
            profile.max_tokens,
            lambda text: estimate_tokens(text, profile),
        )
        cursor = paragraph.line_start + 1
        for i, piece in enumerate(pieces):
            body_lines = piece.count("\n") - 1
            start = paragraph.line_start if i == 0 else cursor
            end = paragraph.line_end if i == len(pieces) - 1 else cursor + body_lines - 1
            result.append(
                Paragraph(
                    content=piece,
                    kind=ParagraphKind.CODE,
                    line_start=start,
                    line_end=end,
                )
            )
            cursor += body_lines
    return result


def _paragraph_text(paragraph: Paragraph) -> str:
    if not paragraph.terminated:
        # Close a fence left open at end of input
        return f"{paragraph.content}\n```"
    return paragraph.content


def _joined(paragraphs: Sequence[Paragraph]) -> str:
    """Chunk text for a buffer, exactly as the finalizer will emit it."""
    return "\n\n".join(_paragraph_text(p) for p in paragraphs).strip()


def paragraph_tokens(paragraph: Paragraph, profile: Profile) -> int:
    """Estimated cost of one paragraph, code weight applied to code only."""
    return estimate_tokens(_paragraph_text(paragraph), profile)


def buffer_tokens(paragraphs: Sequence[Paragraph], profile: Profile) -> int:
    """Running-total cost of a buffer: paragraph estimates plus separators."""
    if not paragraphs:
        return 0
    return sum(paragraph_tokens(p, profile) for p in paragraphs) + SEPARATOR_TOKENS * (
        len(paragraphs) - 1
    )


def assemble_chunks(
    paragraphs: Sequence[Paragraph], profile: Profile
) -> List[List[Paragraph]]:
    """
    Greedily pack paragraphs into chunk buffers.

    A buffer is flushed before a paragraph that would push it past
    ``max_tokens``, and after a paragraph that brings it to ``target_tokens``
    unless that paragraph is an atomic block. A paragraph is never split, so
    one larger than ``max_tokens`` becomes its own oversized buffer.

    The buffer keeps a running total of each paragraph's own estimate, so a
    code weight only discounts code paragraphs. Each blank-line separator
    costs ``SEPARATOR_TOKENS``.
    """
    buffers: List[List[Paragraph]] = []
    buffer: List[Paragraph] = []
    tokens = 0

    for paragraph in paragraphs:
        cost = paragraph_tokens(paragraph, profile)

        if buffer and tokens + SEPARATOR_TOKENS + cost > profile.max_tokens:
            buffers.append(buffer)
            buffer = []
            tokens = 0

        if buffer:
            tokens += SEPARATOR_TOKENS
        buffer.append(paragraph)
        tokens += cost

        if tokens >= profile.target_tokens and not _holds_flush(paragraph, profile):
            buffers.append(buffer)
            buffer = []
            tokens = 0

    if buffer:
        buffers.append(buffer)

    return buffers


def finalize_chunk(
    buffer: Sequence[Paragraph],
    *,
    document: Document,
    doc_id: str,
    heading_path: Sequence[str],
    chunk_index: int,
    profile: Profile,
    offsets: _LineOffsets,
    section_title: Optional[str] = None,
    section_level: Optional[int] = None,
    section_index: int = 0,
) -> Chunk:
    """Turn a packed buffer into a Chunk with citation metadata."""
    content = _joined(buffer)

    line_start = buffer[0].line_start
    line_end = buffer[-1].line_end

    return Chunk(
        chunk_id=generate_chunk_id(doc_id, heading_path, chunk_index),
        doc_id=doc_id,
        content=content,
        token_count=buffer_tokens(buffer, profile),
        source_path=document.path,
        heading_path=" > ".join(heading_path),
        section_title=section_title,
        section_level=section_level,
        section_index=section_index,
        line_range=LineRange(start=line_start, end=line_end),
        byte_range=ByteRange(
            start=offsets.start_of(line_start), end=offsets.end_of(line_end)
        ),
        chunk_index=chunk_index,
        has_code=has_code(content),
        has_list=has_list(content),
        language_hints=detect_languages(content),
    )


def chunk_document(
    document: Union[Document, Mapping[str, Any]],
    profile: Optional[Profile] = None,
    emit: Optional[EmitFn] = None,
) -> List[Chunk]:
    """
    Chunk one document: preamble first, then each section in source order.

    Args:
        document: Document or mapping with ``path`` and ``content``
        profile: Active profile (``default`` when omitted)
        emit: Optional event callback, called as ``emit(event_type, **fields)``

    Returns:
        Chunks with ascending, document-global ``chunk_index``. Blank
        documents yield no chunks.
    """
    if not isinstance(document, Document):
        document = Document.model_validate(document)
    if profile is None:
        profile = PROFILES["default"]

    content = document.content
    if not content.strip():
        return []

    doc_id = compute_doc_id(document.path, content)
    offsets = _LineOffsets(content)
    structure = parse_structure(content, profile.split_on_headings)

    # (body, first body line, heading path, title, level)
    blocks: List[tuple] = [(structure.preamble, 1, [], None, None)]
    for section in structure.sections:
        blocks.append(
            (
                section.body,
                section.start_line + 1,
                [section.anchor],
                section.title,
                section.level,
            )
        )

    chunks: List[Chunk] = []
    # Block 0 is the preamble; sections count from 1
    for section_index, (body, first_line, heading_path, title, level) in enumerate(blocks):
        if not body.strip():
            continue

        paragraphs = split_into_paragraphs(body, first_line)
        if profile.split_oversized_blocks:
            paragraphs = _split_oversized(paragraphs, profile)

        for buffer in assemble_chunks(paragraphs, profile):
            chunk = finalize_chunk(
                buffer,
                document=document,
                doc_id=doc_id,
                heading_path=heading_path,
                chunk_index=len(chunks),
                profile=profile,
                offsets=offsets,
                section_title=title,
                section_level=level,
                section_index=section_index,
            )
            if emit and chunk.token_count > profile.max_tokens:
                emit(
                    "chunk.oversized",
                    chunk_id=chunk.chunk_id,
                    source_path=document.path,
                    token_count=chunk.token_count,
                    max_tokens=profile.max_tokens,
                )
            if emit and not buffer[-1].terminated:
                emit(
                    "chunk.fence_repaired",
                    chunk_id=chunk.chunk_id,
                    source_path=document.path,
                    line_start=buffer[-1].line_start,
                )
            chunks.append(chunk)

    return chunks
