import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml  # type: ignore[import-untyped]
from rich.console import Console
from rich.table import Table

from ..chunking.profiles import PROFILES, ProfileError
from ..core import config as config_module
from ..core.config import Settings
from ..core.logging import log, setup_logging
from ..pipeline.runner import chunk_corpus, read_documents, write_artifacts

app = typer.Typer(add_completion=False, help="Citechunk CLI")


@app.callback()
def _init() -> None:
    setup_logging(config_module.SETTINGS.LOG_FORMAT)  # type: ignore[arg-type]


@app.command()
def version() -> None:
    from .. import __version__

    typer.echo(__version__)


@app.command()
def profiles() -> None:
    """List the built-in chunking profiles."""
    table = Table(title="Chunking profiles")
    table.add_column("Profile", style="bold")
    table.add_column("Target", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Code weight", justify="right")
    table.add_column("Lists")

    for name, profile in PROFILES.items():
        table.add_row(
            name,
            str(profile.target_tokens),
            str(profile.min_tokens),
            str(profile.max_tokens),
            str(profile.code_block_weight) if profile.code_block_weight else "-",
            "hold" if profile.hold_lists else ("keep" if profile.preserve_lists else "split"),
        )

    Console().print(table)


def _load_profile_file(path: str) -> Dict[str, Any]:
    """Read a custom profile override from JSON or YAML."""
    profile_path = Path(path)
    if not profile_path.exists():
        raise ProfileError(f"Profile file not found: {path}")

    text = profile_path.read_text(encoding="utf-8")
    try:
        if profile_path.suffix in [".yaml", ".yml"]:
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ProfileError(f"Could not parse profile file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ProfileError(f"Profile file must contain a mapping: {path}")
    return data


@app.command()
def chunk(
    input_file: Path = typer.Argument(
        ...,
        help="NDJSON file of normalized documents, one {path, content} object per line",
    ),
    profile: Optional[str] = typer.Option(
        None,
        "--profile",
        help="Chunking profile: default, code-heavy, faq, granular, large-context",
    ),
    profile_file: Optional[str] = typer.Option(
        None, "--profile-file", help="JSON/YAML file overriding profile fields"
    ),
    out_dir: Optional[str] = typer.Option(
        None, "--out-dir", help="Directory for chunks.jsonl and chunks.meta.json"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", help="Number of documents chunked in parallel"
    ),
    split_oversized: Optional[bool] = typer.Option(
        None,
        "--split-oversized/--no-split-oversized",
        help="Split code blocks larger than the profile's maxTokens",
    ),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        help="Config file (.citechunk.yaml auto-discovered)",
    ),
) -> None:
    """
    Chunk normalized documents into token-bounded, citable pieces.

    Writes chunks.jsonl (one chunk per line) and chunks.meta.json (profile and
    corpus statistics). Documents that fail to chunk are listed in
    skipped_docs.jsonl and never stop the run.

    Example:
        citechunk chunk docs.ndjson                       # default profile
        citechunk chunk docs.ndjson --profile granular    # smaller chunks
    """
    settings = Settings.load_config(config_file)
    config_module.SETTINGS = settings

    if not input_file.exists():
        typer.echo(f"❌ Input not found: {input_file}", err=True)
        raise typer.Exit(1)

    profile_name = profile or settings.CHUNK_PROFILE
    destination = Path(out_dir or settings.CHUNK_OUTPUT_DIR)
    worker_count = workers if workers is not None else settings.CHUNK_WORKERS

    try:
        overrides: Dict[str, Any] = {}
        custom_file = profile_file or settings.CHUNK_PROFILE_FILE
        if custom_file:
            overrides.update(_load_profile_file(custom_file))
        if split_oversized is not None:
            overrides["split_oversized_blocks"] = split_oversized
        elif settings.CHUNK_SPLIT_OVERSIZED:
            overrides["split_oversized_blocks"] = True

        documents, skipped_inputs = read_documents(input_file)
        result = chunk_corpus(
            documents,
            profile=profile_name,
            overrides=overrides,
            workers=worker_count,
            skipped_inputs=skipped_inputs,
        )
        artifacts = write_artifacts(result, destination)
    except (ProfileError, OSError, ValueError) as e:
        log.error("chunk.failed", error=str(e))
        typer.echo(f"❌ Chunking failed: {e}", err=True)
        raise typer.Exit(1) from e

    for warning in result.warnings:
        typer.echo(f"⚠️  {warning}", err=True)

    stats = result.stats
    typer.echo(
        f"✔ chunks.jsonl ({stats.total_chunks} chunks, profile: {stats.profile})",
        err=True,
    )
    typer.echo(f"   Documents: {stats.total_documents}", err=True)
    typer.echo(f"   Average chunk size: {stats.average_chunk_size} chars", err=True)
    typer.echo(
        f"   Average chunks per document: {stats.average_chunks_per_document}",
        err=True,
    )
    if result.skipped:
        typer.echo(
            f"   Skipped: {len(result.skipped)} (see {artifacts['skipped']})",
            err=True,
        )
    typer.echo(f"\n📁 Artifacts written to: {destination}", err=True)


if __name__ == "__main__":
    app()
