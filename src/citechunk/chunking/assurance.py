"""
Chunk assurance and quality reporting.
"""

import statistics
from typing import Any, Dict, List, Mapping, Sequence, Union

from ..core.models import Chunk, Profile
from .boundaries import FENCE_RE, is_code_block


def _percentile_stats(values: List[int]) -> Dict[str, int]:
    return {
        "min": min(values) if values else 0,
        "median": int(statistics.median(values)) if values else 0,
        "p95": (
            int(statistics.quantiles(values, n=20)[18])
            if len(values) > 20
            else (max(values) if values else 0)
        ),
        "max": max(values) if values else 0,
    }


def count_fence_lines(content: str) -> int:
    """Number of fence delimiter lines in a chunk's content."""
    return sum(1 for line in content.split("\n") if FENCE_RE.match(line))


def _section_key(chunk: Chunk) -> tuple:
    """Identifies the section a chunk came from; repeated titles stay distinct."""
    return (chunk.source_path, chunk.doc_id, chunk.section_index)


def _is_atomic(content: str) -> bool:
    """A chunk made of a single paragraph or a single fenced block."""
    if is_code_block(content) and count_fence_lines(content) == 2:
        return True
    return "\n\n" not in content


def build_chunk_assurance(
    chunks: Sequence[Union[Chunk, Mapping[str, Any]]], profile: Profile
) -> Dict[str, Any]:
    """
    Build a chunk assurance report for a chunk list.

    Args:
        chunks: Chunks in output order, as models or chunks.jsonl records
        profile: Profile the chunks were produced with

    Returns:
        Assurance report dictionary. Section tails may fall below
        ``minTokens`` and atomic blocks may exceed ``maxTokens``; both are
        reported separately from real breaches.
    """
    records = [c if isinstance(c, Chunk) else Chunk.model_validate(c) for c in chunks]

    token_counts = [c.token_count for c in records]
    char_counts = [len(c.content) for c in records]

    breaches: List[Dict[str, Any]] = []
    oversized_atomic: List[str] = []
    below_min: List[str] = []
    fence_violations: List[str] = []
    section_tails = 0

    for i, chunk in enumerate(records):
        following = records[i + 1] if i + 1 < len(records) else None
        is_tail = following is None or _section_key(following) != _section_key(chunk)
        if is_tail:
            section_tails += 1

        if chunk.token_count > profile.max_tokens:
            if _is_atomic(chunk.content):
                oversized_atomic.append(chunk.chunk_id)
            else:
                breaches.append(
                    {
                        "chunk_id": chunk.chunk_id,
                        "source_path": chunk.source_path,
                        "token_count": chunk.token_count,
                    }
                )

        if chunk.token_count < profile.min_tokens and not is_tail:
            below_min.append(chunk.chunk_id)

        if count_fence_lines(chunk.content) % 2:
            fence_violations.append(chunk.chunk_id)

    token_stats = {
        "count": len(token_counts),
        **_percentile_stats(token_counts),
        "total": sum(token_counts),
    }

    status = "PASS" if not breaches and not fence_violations else "FAIL"

    return {
        "tokenCap": {
            "targetTokens": profile.target_tokens,
            "minTokens": profile.min_tokens,
            "maxTokens": profile.max_tokens,
            "breaches": {
                "count": len(breaches),
                "examples": breaches[:10],
            },
            "oversizedAtomic": {
                "count": len(oversized_atomic),
                "examples": oversized_atomic[:10],
            },
        },
        "tokenStats": token_stats,
        "charStats": _percentile_stats(char_counts),
        "bottoms": {
            "belowMinCount": len(below_min),
            "belowMinExamples": below_min[:10],
            "sectionTails": section_tails,
        },
        "fences": {
            "violations": len(fence_violations),
            "examples": fence_violations[:10],
        },
        "status": status,
    }
