"""
Ingestion subpackage -- reading input documents and writing results.

Pipeline flow:
    read_documents  -->  extract_fields (per record)  -->  write_documents
    (JSON array)         (id, text)                       (JSON array + embedding)
"""

from docembed.ingestion.documents import (
    EmbeddedDocument,
    extract_fields,
    read_documents,
    write_documents,
)
