"""
Document Embedding Preprocessor -- root package.

This package turns a JSON document collection into dense vectors:
    ingestion  -> read ``{id, text}`` records and write embedded records
    embeddings -> run a GGUF text-encoder model through llama.cpp
    pipeline   -> the sequential load -> encode -> write driver
    config     -> fixed defaults plus optional configs/settings.yaml
"""

__version__ = "0.1.0"
