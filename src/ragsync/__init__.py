"""ragsync — keep a chunk-level search index in sync with external documents."""

__version__ = "0.1.0"
