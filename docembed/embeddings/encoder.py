"""
Text Encoder
=============
Converts a single text string into a dense vector using a GGUF
text-encoder model (BGE-base by default) running on llama.cpp.

Model choice:
  - bge-base-en-v1.5 produces 768-dimensional embeddings
  - The f32 GGUF export runs on CPU through llama.cpp without PyTorch
  - Max input: 512 tokens, which is also the context window we create

Design decisions:
  - One document per forward pass; no padding across documents
  - Vectors are returned as float32 numpy arrays, copied out of the
    context so they stay valid after the next call
  - The encoder owns exactly one model and one context and releases both
    in ``close()`` (or on leaving a ``with`` block), context first
  - Not thread-safe: every call mutates the shared context
"""

import logging
from typing import Optional

import numpy as np

from docembed.config import DEFAULT_N_BATCH, DEFAULT_N_CTX, EXPECTED_EMBEDDING_DIM
from docembed.embeddings.llama_backend import LlamaCppBackend
from docembed.errors import EmbeddingError

logger = logging.getLogger(__name__)


class TextEncoder:
    """
    Wraps a llama.cpp model + context to produce one embedding per text.

    Usage:
        with TextEncoder("bge-base-en-v1.5-f32.gguf") as encoder:
            vector = encoder.encode("Hello world")
            # vector.shape == (encoder.embedding_dim,)
    """

    def __init__(
        self,
        model_path: str,
        n_ctx: int = DEFAULT_N_CTX,
        n_batch: int = DEFAULT_N_BATCH,
        expected_dim: int = EXPECTED_EMBEDDING_DIM,
        backend: Optional[LlamaCppBackend] = None,
    ):
        """
        Args:
            model_path   : path to the GGUF model file
            n_ctx        : context window in tokens
            n_batch      : max tokens per forward pass
            expected_dim : embedding size to warn about if the model differs
            backend      : inference engine adapter (llama.cpp by default)

        Raises:
            EmbeddingError if the model cannot be loaded or the context
            cannot be created.  No handle is leaked on either path.
        """
        self.model_path = model_path
        self._backend = backend if backend is not None else LlamaCppBackend()
        self._model = None
        self._ctx = None
        # llama.cpp asserts (aborts) on a sequence larger than one micro-batch.
        self._max_tokens = min(n_ctx, n_batch)

        self._backend.init_backend()

        logger.info("Loading encoder model: %s", model_path)
        self._model = self._backend.load_model(model_path)
        try:
            self._vocab = self._backend.vocab(self._model)
            self._dim = self._backend.embedding_dim(self._model)
            print(f"Model loaded. Embedding dimension: {self._dim}")
            if self._dim != expected_dim:
                logger.warning(
                    "Expected embedding dimension %d, got %d", expected_dim, self._dim
                )

            self._ctx = self._backend.create_context(
                self._model, n_ctx=n_ctx, n_batch=n_batch
            )
            self._has_encoder = self._backend.has_encoder(self._model)
        except BaseException:
            self.close()
            raise

        if not self._has_encoder:
            logger.warning("Model does not appear to be an encoder model")

    @property
    def embedding_dim(self) -> int:
        """Return the embedding vector dimensionality."""
        return self._dim

    @property
    def has_encoder(self) -> bool:
        return self._has_encoder

    @property
    def closed(self) -> bool:
        return self._model is None and self._ctx is None

    def encode(self, text: str) -> np.ndarray:
        """
        Encode one string into a dense vector.

        Steps:
            1. Ask the tokenizer how many tokens the text needs; texts longer
               than min(n_ctx, n_batch) are rejected, not truncated
            2. Tokenize into a buffer of exactly that size (BOS/EOS added)
            3. Submit the tokens as a single-sequence batch
            4. Run the forward pass
            5. Read the pooled embedding for sequence 0
            6. Copy ``embedding_dim`` floats out of the context

        Returns:
            np.ndarray of shape (embedding_dim,), dtype float32
        """
        if self._ctx is None:
            raise EmbeddingError("Encoder is closed")

        size = self._backend.required_capacity(self._vocab, text)
        if not size.ok:
            logger.debug("Token count query failed: %s", size.error)
            raise EmbeddingError("Failed to tokenize text")
        if size.capacity > self._max_tokens:
            raise EmbeddingError(
                f"Text needs {size.capacity} tokens, context holds {self._max_tokens}"
            )

        result = self._backend.tokenize(self._vocab, text, size.capacity)
        if not result.ok:
            logger.debug("Tokenization failed: %s", result.error)
            raise EmbeddingError("Failed to tokenize text")

        self._backend.encode(self._ctx, result.tokens)
        return self._backend.sequence_embedding(self._ctx, self._dim)

    def report_performance(self) -> None:
        """Print the context's performance counters (load/eval timings)."""
        if self._ctx is not None:
            self._backend.print_perf(self._ctx)

    def close(self) -> None:
        """Release the context, then the model.  Safe to call twice."""
        if self._ctx is not None:
            self._backend.free_context(self._ctx)
            self._ctx = None
        if self._model is not None:
            self._backend.free_model(self._model)
            self._model = None

    def __enter__(self) -> "TextEncoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
