"""
llama.cpp Backend
==================
Thin adapter over the low-level ``llama_cpp`` bindings (llama-cpp-python).

Only the handful of calls the encoder needs are exposed:

    init_backend        one-time, process-wide ``llama_backend_init``
    load_model          GGUF file -> model handle
    create_context      model -> inference context (embedding mode)
    required_capacity   dry-run tokenization, returns the token count
    tokenize            tokenization into a buffer of that exact size
    encode              single-sequence forward pass
    sequence_embedding  pooled embedding of sequence 0 as a numpy copy
    free_context / free_model

Tokenization sizing:
    ``llama_tokenize`` reports the buffer size it needs as a *negative*
    return value when the supplied buffer is too small.  That convention
    stays inside this module: ``required_capacity`` and ``tokenize`` return
    ``CapacityResult`` / ``TokenizeResult`` objects that carry either a
    value or an error message, never both.

The ``lib`` argument exists so tests can pass a stand-in namespace with
the same functions; by default the real ``llama_cpp`` module is used.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from docembed.errors import EmbeddingError

logger = logging.getLogger(__name__)

# id(lib) -> lib.  Holding the reference keeps the id from being reused.
_initialised: Dict[int, Any] = {}
_init_lock = threading.Lock()


def init_backend(lib: Any) -> bool:
    """
    Initialise the llama.cpp backend once per process.

    Safe to call repeatedly and from several threads.  The backend is
    never torn down explicitly; process exit releases it.

    Returns:
        True if this call performed the initialisation.
    """
    with _init_lock:
        if id(lib) in _initialised:
            return False
        lib.llama_backend_init()
        _initialised[id(lib)] = lib
        logger.debug("llama.cpp backend initialised")
        return True


@dataclass(frozen=True)
class CapacityResult:
    """Outcome of the tokenization size query."""
    capacity: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class TokenizeResult:
    """Outcome of tokenizing into a fixed-size buffer."""
    tokens: Tuple[int, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LlamaCppBackend:
    """
    Inference engine calls used by ``TextEncoder``.

    Usage::

        backend = LlamaCppBackend()
        backend.init_backend()
        model = backend.load_model("bge-base-en-v1.5-f32.gguf")
        ctx = backend.create_context(model, n_ctx=512, n_batch=512)
    """

    def __init__(self, lib: Any = None):
        if lib is None:
            try:
                import llama_cpp
            except ImportError as exc:
                raise ImportError(
                    "llama-cpp-python is required. "
                    "Install: pip install llama-cpp-python"
                ) from exc
            lib = llama_cpp
        self._lib = lib

    def init_backend(self) -> bool:
        return init_backend(self._lib)

    # ------------------------------------------------------------------
    # Model / context lifecycle
    # ------------------------------------------------------------------

    def load_model(self, model_path: str):
        params = self._lib.llama_model_default_params()
        model = self._lib.llama_model_load_from_file(
            str(model_path).encode("utf-8"), params
        )
        if not model:
            raise EmbeddingError(f"Failed to load model from: {model_path}")
        return model

    def vocab(self, model):
        return self._lib.llama_model_get_vocab(model)

    def embedding_dim(self, model) -> int:
        return int(self._lib.llama_model_n_embd(model))

    def has_encoder(self, model) -> bool:
        return bool(self._lib.llama_model_has_encoder(model))

    def create_context(self, model, n_ctx: int, n_batch: int):
        """
        Create an inference context in embedding mode.

        Performance counters stay enabled (``no_perf = False``) so that
        ``print_perf`` has timings to report.
        """
        params = self._lib.llama_context_default_params()
        params.n_ctx = n_ctx
        params.n_batch = n_batch
        # Non-causal encoders must fit a whole sequence in one micro-batch.
        params.n_ubatch = n_batch
        params.embeddings = True
        params.no_perf = False
        ctx = self._lib.llama_init_from_model(model, params)
        if not ctx:
            raise EmbeddingError("Failed to create context")
        return ctx

    def free_context(self, ctx) -> None:
        self._lib.llama_free(ctx)

    def free_model(self, model) -> None:
        self._lib.llama_model_free(model)

    def print_perf(self, ctx) -> None:
        self._lib.llama_perf_context_print(ctx)

    # ------------------------------------------------------------------
    # Tokenization
    # ------------------------------------------------------------------

    def required_capacity(self, vocab, text: str) -> CapacityResult:
        """
        Ask the tokenizer how many tokens ``text`` needs, including the
        beginning/end-of-sequence markers.
        """
        try:
            data = text.encode("utf-8")
        except UnicodeEncodeError as exc:
            return CapacityResult(error=f"text is not valid UTF-8: {exc.reason}")
        probe = self._lib.llama_tokenize(vocab, data, len(data), None, 0, True, True)
        # A zero-size buffer always overflows, so a valid probe is negative.
        capacity = -probe
        if capacity <= 0:
            return CapacityResult(error=f"tokenizer size query returned {probe}")
        return CapacityResult(capacity=capacity)

    def tokenize(self, vocab, text: str, capacity: int) -> TokenizeResult:
        try:
            data = text.encode("utf-8")
        except UnicodeEncodeError as exc:
            return TokenizeResult(error=f"text is not valid UTF-8: {exc.reason}")
        buf = (self._lib.llama_token * capacity)()
        n_tokens = self._lib.llama_tokenize(
            vocab, data, len(data), buf, capacity, True, True
        )
        if n_tokens < 0:
            return TokenizeResult(
                error=f"tokenizer needs {-n_tokens} tokens, buffer holds {capacity}"
            )
        return TokenizeResult(tokens=tuple(buf[:n_tokens]))

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def encode(self, ctx, tokens: Tuple[int, ...]) -> None:
        """Run one forward pass over a single token sequence."""
        arr = (self._lib.llama_token * len(tokens))(*tokens)
        batch = self._lib.llama_batch_get_one(arr, len(tokens))
        status = self._lib.llama_encode(ctx, batch)
        if status != 0:
            raise EmbeddingError(f"Failed to encode batch (status {status})")

    def sequence_embedding(self, ctx, n_embd: int) -> np.ndarray:
        """Copy the pooled embedding of sequence 0 out of the context."""
        ptr = self._lib.llama_get_embeddings_seq(ctx, 0)
        if not ptr:
            raise EmbeddingError("Failed to get embeddings")
        return np.array(np.ctypeslib.as_array(ptr, shape=(n_embd,)), dtype=np.float32)
