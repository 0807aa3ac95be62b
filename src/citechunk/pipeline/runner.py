"""
Corpus-level chunking: drives the engine over documents and writes artifacts.
"""

import concurrent.futures
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)

from pydantic import ValidationError

from ..chunking.assurance import build_chunk_assurance
from ..chunking.engine import chunk_document
from ..chunking.profiles import ProfileSelector, resolve_profile
from ..core.logging import bind_run_context, log
from ..core.models import Chunk, ChunkStats, Document, Profile, SkippedDocument

EmitFn = Callable[..., None]
DocumentInput = Union[Document, Mapping[str, Any]]


class ChunkRunResult(NamedTuple):
    chunks: List[Chunk]
    stats: ChunkStats
    profile: Profile
    warnings: List[str]
    skipped: List[SkippedDocument]


class _DocOutcome(NamedTuple):
    path: str
    chunks: List[Chunk]
    error: Optional[str]


def _noop_emit(*args: Any, **kwargs: Any) -> None:
    pass


def _doc_path(document: Any, position: int) -> str:
    if isinstance(document, Document):
        return document.path
    if isinstance(document, Mapping):
        path = document.get("path") or document.get("relativePath")
        if path:
            return str(path)
    return f"document_{position}"


def _chunk_one(
    position: int, document: DocumentInput, profile: Profile, emit: EmitFn
) -> _DocOutcome:
    """Chunk one document, turning any failure into a skip record."""
    path = f"document_{position}"
    try:
        path = _doc_path(document, position)
        chunks = chunk_document(document, profile, emit=emit)
    except Exception as e:
        log.warning("chunk.doc_failed", path=path, profile=profile.name, error=str(e))
        emit("chunk.doc_failed", source_path=path, error=str(e))
        return _DocOutcome(path=path, chunks=[], error=str(e))

    emit("chunk.doc", source_path=path, chunk_count=len(chunks))
    return _DocOutcome(path=path, chunks=chunks, error=None)


def compute_stats(
    chunks: List[Chunk],
    total_documents: int,
    profile: Profile,
    warnings: Optional[List[str]] = None,
    skipped_documents: int = 0,
    assurance: Optional[Dict[str, Any]] = None,
) -> ChunkStats:
    """Corpus statistics for the chunks.meta.json sidecar."""
    average_chunk_size = (
        round(sum(len(c.content) for c in chunks) / len(chunks)) if chunks else 0
    )
    average_per_doc = (
        round(len(chunks) / total_documents, 1) if total_documents else 0.0
    )
    return ChunkStats(
        generated_at=datetime.now(timezone.utc).isoformat(),
        profile=profile.name,
        profile_settings=profile.settings(),
        total_chunks=len(chunks),
        total_documents=total_documents,
        average_chunk_size=average_chunk_size,
        average_chunks_per_document=average_per_doc,
        warnings=list(warnings or []),
        skipped_documents=skipped_documents,
        assurance=assurance or {},
    )


def chunk_corpus(
    documents: Iterable[DocumentInput],
    profile: ProfileSelector = "default",
    overrides: Optional[Mapping[str, Any]] = None,
    workers: int = 1,
    emit: Optional[EmitFn] = None,
    skipped_inputs: Optional[List[SkippedDocument]] = None,
) -> ChunkRunResult:
    """
    Chunk every document and merge results in caller order.

    Args:
        documents: Documents or mappings with ``path``/``content``
        profile: Built-in profile name, Profile, or partial override mapping
        overrides: Profile field overrides layered on the selected profile
        workers: Documents chunked in parallel when greater than 1
        emit: Optional event callback, called as ``emit(event_type, **fields)``
        skipped_inputs: Records already rejected while reading the input

    Returns:
        ChunkRunResult. A document that fails to chunk is skipped and
        recorded; it never stops the rest of the corpus.
    """
    emit = emit or _noop_emit
    resolved, warnings = resolve_profile(profile, overrides)
    for warning in warnings:
        log.warning("chunk.profile_fallback", message=warning, profile=resolved.name)
        emit("chunk.warning", message=warning)

    with bind_run_context(profile=resolved.name, workers=workers):
        docs = list(documents)
        emit("chunk.begin", profile=resolved.name, documents=len(docs), workers=workers)

        if workers > 1 and len(docs) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                # map() yields in submission order, not completion order
                outcomes = list(
                    executor.map(
                        lambda item: _chunk_one(item[0], item[1], resolved, emit),
                        enumerate(docs),
                    )
                )
        else:
            outcomes = [_chunk_one(i, doc, resolved, emit) for i, doc in enumerate(docs)]

        chunks: List[Chunk] = []
        skipped: List[SkippedDocument] = list(skipped_inputs or [])
        for outcome in outcomes:
            if outcome.error is not None:
                skipped.append(
                    SkippedDocument(
                        path=outcome.path,
                        reason=f"Error processing document: {outcome.error}",
                    )
                )
                continue
            chunks.extend(outcome.chunks)

        stats = compute_stats(
            chunks,
            total_documents=len(docs),
            profile=resolved,
            warnings=warnings,
            skipped_documents=len(skipped),
            assurance=build_chunk_assurance(chunks, resolved),
        )

        log.info(
            "chunk.complete",
            documents=len(docs),
            chunks=len(chunks),
            skipped=len(skipped),
        )
    emit("chunk.end", chunks=len(chunks), skipped=len(skipped))

    return ChunkRunResult(
        chunks=chunks,
        stats=stats,
        profile=resolved,
        warnings=warnings,
        skipped=skipped,
    )


def read_documents(path: Union[str, Path]) -> Tuple[List[Document], List[SkippedDocument]]:
    """
    Load NDJSON document records (one ``{path, content}`` object per line).

    Malformed lines are returned as skipped records instead of raising.
    """
    documents: List[Document] = []
    skipped: List[SkippedDocument] = []

    with open(path, "r", encoding="utf-8") as fin:
        for line_num, line in enumerate(fin, 1):
            if not line.strip():
                continue
            try:
                documents.append(Document.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as e:
                skipped.append(
                    SkippedDocument(
                        path=f"line_{line_num}",
                        reason=f"Invalid document record: {e}",
                        line_number=line_num,
                    )
                )

    return documents, skipped


def write_artifacts(result: ChunkRunResult, out_dir: Union[str, Path]) -> Dict[str, Path]:
    """
    Write chunks.jsonl, chunks.meta.json and, when needed, skipped_docs.jsonl.

    Returns:
        Mapping of artifact name to written path.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    chunks_file = out / "chunks.jsonl"
    with open(chunks_file, "w", encoding="utf-8") as fout:
        for chunk in result.chunks:
            fout.write(json.dumps(chunk.model_dump(), ensure_ascii=False) + "\n")

    meta_file = out / "chunks.meta.json"
    with open(meta_file, "w", encoding="utf-8") as f:
        json.dump(result.stats.model_dump(), f, indent=2)

    artifacts = {"chunks": chunks_file, "meta": meta_file}

    if result.skipped:
        skipped_file = out / "skipped_docs.jsonl"
        with open(skipped_file, "w", encoding="utf-8") as f:
            for doc in result.skipped:
                f.write(json.dumps(doc.model_dump()) + "\n")
        artifacts["skipped"] = skipped_file

    log.info(
        "chunk.artifacts",
        out_dir=str(out),
        chunks=len(result.chunks),
        profile=result.profile.name,
    )
    return artifacts
