"""
Citechunk Chunking Package

Deterministic, structure-aware chunking with profile-driven token budgets,
atomic code fences and stable citation identifiers.
"""

from .assurance import build_chunk_assurance
from .boundaries import (
    DocumentStructure,
    Paragraph,
    ParagraphKind,
    Section,
    create_anchor,
    parse_structure,
    split_into_paragraphs,
)
from .engine import (
    assemble_chunks,
    chunk_document,
    compute_doc_id,
    generate_chunk_id,
)
from .profiles import PROFILES, ProfileError, estimate_tokens, resolve_profile

__all__ = [
    "DocumentStructure",
    "PROFILES",
    "Paragraph",
    "ParagraphKind",
    "ProfileError",
    "Section",
    "assemble_chunks",
    "build_chunk_assurance",
    "chunk_document",
    "compute_doc_id",
    "create_anchor",
    "estimate_tokens",
    "generate_chunk_id",
    "parse_structure",
    "resolve_profile",
    "split_into_paragraphs",
]
