"""ragsync ingest core: hashing, metadata, change decisions and chunking."""

from ragsync.ingest.chunker import chunk_by_tokens, estimate_tokens
from ragsync.ingest.decision import (
    DecisionInput,
    IngestDecision,
    decide_ingest_action,
    is_unchanged,
)
from ragsync.ingest.hashing import hash_chunk, hash_content, normalize_text
from ragsync.ingest.identifiers import (
    DocIdentifiers,
    derive_page_identifiers,
    derive_url_identifiers,
)
from ragsync.ingest.metadata import (
    apply_default_metadata,
    merge_metadata,
    metadata_equals,
    normalize_metadata,
    stable_serialize,
)

__all__ = [
    "DecisionInput",
    "DocIdentifiers",
    "IngestDecision",
    "apply_default_metadata",
    "chunk_by_tokens",
    "decide_ingest_action",
    "derive_page_identifiers",
    "derive_url_identifiers",
    "estimate_tokens",
    "hash_chunk",
    "hash_content",
    "is_unchanged",
    "merge_metadata",
    "metadata_equals",
    "normalize_metadata",
    "normalize_text",
    "stable_serialize",
]
