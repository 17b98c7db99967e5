"""
Embedding Pipeline
===================
Sequential driver: read documents -> load model -> encode each document
-> write results.

Stages (strictly in order, no retries)::

    OpenInput  ->  LoadModel  ->  ProcessAll  ->  WriteOutput  ->  Exit

Failure semantics:
    Any error raises ``EmbeddingError`` out of ``run_pipeline``.  Results are
    held in memory and written only after every document has been encoded,
    so a failure on document N leaves no new output file behind (a file
    from an earlier run is left as it was).
"""

import logging
import time
from typing import Callable, List, Optional

from docembed.config import Settings
from docembed.embeddings.encoder import TextEncoder
from docembed.embeddings.llama_backend import LlamaCppBackend
from docembed.ingestion.documents import (
    EmbeddedDocument,
    extract_fields,
    read_documents,
    write_documents,
)

logger = logging.getLogger(__name__)


def embed_documents(
    documents: List,
    encoder: TextEncoder,
    progress_every: int = 100,
) -> List[EmbeddedDocument]:
    """
    Encode every document in order.

    A progress line is printed for each index divisible by
    ``progress_every`` (0, 100, 200, ... by default).
    """
    total = len(documents)
    results: List[EmbeddedDocument] = []
    for i, doc in enumerate(documents):
        if progress_every > 0 and i % progress_every == 0:
            print(f"Processing document {i}/{total}...")

        doc_id, text = extract_fields(doc, i)
        vector = encoder.encode(text)
        results.append(
            EmbeddedDocument(id=doc_id, text=text, embedding=vector.tolist())
        )
    return results


def run_pipeline(
    settings: Settings,
    backend: Optional[LlamaCppBackend] = None,
    encoder_factory: Callable[..., TextEncoder] = TextEncoder,
    report_performance: bool = False,
) -> int:
    """
    Run the full preprocessing pipeline.

    Args:
        settings           : resolved paths and model parameters
        backend            : inference engine adapter (llama.cpp by default)
        encoder_factory    : builds the encoder; ``TextEncoder`` by default
        report_performance : print llama.cpp timings after encoding

    Returns:
        Number of documents written.
    """
    # --- OpenInput ---
    print(f"Loading documents from {settings.input_path}...")
    documents = read_documents(settings.input_path)
    print(f"Found {len(documents)} documents")

    # --- LoadModel ---
    if backend is None:
        backend = LlamaCppBackend()
    backend.init_backend()

    print(f"Loading model from {settings.model_path}...")
    start = time.perf_counter()
    with encoder_factory(
        settings.model_path,
        n_ctx=settings.n_ctx,
        n_batch=settings.n_batch,
        expected_dim=settings.expected_dim,
        backend=backend,
    ) as encoder:
        logger.info("Model ready in %.2fs", time.perf_counter() - start)

        # --- ProcessAll ---
        start = time.perf_counter()
        results = embed_documents(documents, encoder, settings.progress_every)
        elapsed = time.perf_counter() - start
        logger.info(
            "Encoded %d documents in %.2fs (dim=%d)",
            len(results), elapsed, encoder.embedding_dim,
        )
        if report_performance:
            encoder.report_performance()

    # --- WriteOutput ---
    print(f"Writing results to {settings.output_path}...")
    write_documents(settings.output_path, results)

    # --- Exit ---
    print(f"Successfully processed {len(results)} documents")
    print(f"Output saved to {settings.output_path}")
    return len(results)
