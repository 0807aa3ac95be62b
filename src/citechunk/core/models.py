from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Document(BaseModel):
    """A normalized document handed to the chunker by upstream steps."""

    path: str
    content: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_upstream_keys(cls, data: Any) -> Any:
        # Normalizers emit relativePath/text_md; accept both shapes.
        if isinstance(data, dict):
            data = dict(data)
            if "path" not in data and "relativePath" in data:
                data["path"] = data.pop("relativePath")
            if "content" not in data and "text_md" in data:
                data["content"] = data.pop("text_md")
        return data


class Profile(BaseModel):
    """Token thresholds and structural flags that drive chunk packing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str
    target_tokens: int = Field(..., alias="targetTokens", gt=0)
    min_tokens: int = Field(..., alias="minTokens", gt=0)
    max_tokens: int = Field(..., alias="maxTokens", gt=0)
    split_on_headings: bool = Field(True, alias="splitOnHeadings")
    preserve_code_blocks: bool = Field(True, alias="preserveCodeBlocks")
    preserve_lists: bool = Field(True, alias="preserveLists")
    # preserveLists is reported as-is; packing holds lists only with holdLists
    hold_lists: bool = Field(False, alias="holdLists")
    code_block_weight: float | None = Field(None, alias="codeBlockWeight")
    split_oversized_blocks: bool = Field(False, alias="splitOversizedBlocks")

    @field_validator("code_block_weight")
    @classmethod
    def _check_weight(cls, value: float | None) -> float | None:
        if value is not None and not 0 < value <= 1:
            raise ValueError("codeBlockWeight must be in (0, 1]")
        return value

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Profile":
        if not self.min_tokens <= self.target_tokens <= self.max_tokens:
            raise ValueError(
                "profile thresholds must satisfy minTokens <= targetTokens <= maxTokens"
            )
        return self

    def settings(self) -> dict[str, Any]:
        """Profile settings in the camelCase shape used by the metadata sidecar."""
        return self.model_dump(by_alias=True, exclude_none=True)


class LineRange(BaseModel):
    start: int
    end: int


class ByteRange(BaseModel):
    start: int
    end: int


class Chunk(BaseModel):
    """A token-bounded, citation-addressable slice of a document."""

    model_config = ConfigDict(frozen=True)

    # Stable identification
    chunk_id: str
    doc_id: str

    # Content
    content: str
    token_count: int

    # Citation
    source_path: str
    heading_path: str = ""
    section_title: str | None = None
    section_level: int | None = None
    # 0 for the preamble, then 1.. per section in source order
    section_index: int = 0

    # Position
    line_range: LineRange
    byte_range: ByteRange
    chunk_index: int

    # Metadata
    has_code: bool = False
    has_list: bool = False
    language_hints: list[str] = []


class SkippedDocument(BaseModel):
    path: str
    reason: str
    line_number: int | None = None


class ChunkStats(BaseModel):
    """Corpus-level summary written next to chunks.jsonl."""

    version: str = "1.0.0"
    generated_at: str
    profile: str
    profile_settings: dict[str, Any]
    total_chunks: int
    total_documents: int
    average_chunk_size: int
    average_chunks_per_document: float
    warnings: list[str] = []
    skipped_documents: int = 0
    assurance: dict[str, Any] = {}
