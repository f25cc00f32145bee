"""codeatlas — syntax-aware indexing of source trees for semantic retrieval."""

__version__ = "0.1.0"
