"""LlamaCppBackend against a namespace that mimics the llama_cpp C API."""

import ctypes
from types import SimpleNamespace

import numpy as np
import pytest

from docembed.embeddings.llama_backend import (
    CapacityResult,
    LlamaCppBackend,
    TokenizeResult,
    init_backend,
)
from docembed.errors import EmbeddingError


def make_lib(load_ok=True, ctx_ok=True, encode_status=0, embedding=None):
    lib = SimpleNamespace()
    lib.llama_token = ctypes.c_int32
    lib.backend_inits = 0
    lib.freed = []

    def llama_backend_init():
        lib.backend_inits += 1

    def llama_tokenize(vocab, data, n_bytes, buf, n_max, add_special, parse_special):
        ids = [101] + [len(w) for w in data.split()] + [102]
        if n_max < len(ids):
            return -len(ids)
        for i, t in enumerate(ids):
            buf[i] = t
        return len(ids)

    def llama_init_from_model(model, params):
        lib.context_params = params
        return 2 if ctx_ok else None

    def llama_batch_get_one(tokens, n_tokens):
        return list(tokens[:n_tokens])

    def llama_encode(ctx, batch):
        lib.last_batch = batch
        return encode_status

    def llama_get_embeddings_seq(ctx, seq_id):
        if embedding is None:
            return None
        lib.embd_buffer = (ctypes.c_float * len(embedding))(*embedding)
        return ctypes.cast(lib.embd_buffer, ctypes.POINTER(ctypes.c_float))

    lib.llama_backend_init = llama_backend_init
    lib.llama_tokenize = llama_tokenize
    lib.llama_model_default_params = lambda: SimpleNamespace()
    lib.llama_model_load_from_file = lambda path, params: 1 if load_ok else None
    lib.llama_model_get_vocab = lambda model: "vocab"
    lib.llama_model_n_embd = lambda model: 4
    lib.llama_model_has_encoder = lambda model: True
    lib.llama_context_default_params = lambda: SimpleNamespace(
        n_ctx=0, n_batch=0, embeddings=False, no_perf=True
    )
    lib.llama_init_from_model = llama_init_from_model
    lib.llama_batch_get_one = llama_batch_get_one
    lib.llama_encode = llama_encode
    lib.llama_get_embeddings_seq = llama_get_embeddings_seq
    lib.llama_free = lambda ctx: lib.freed.append(("ctx", ctx))
    lib.llama_model_free = lambda model: lib.freed.append(("model", model))
    return lib


def test_init_backend_runs_once_per_library():
    lib = make_lib()
    assert init_backend(lib) is True
    assert init_backend(lib) is False
    assert LlamaCppBackend(lib).init_backend() is False
    assert lib.backend_inits == 1


def test_required_capacity_turns_negative_probe_into_count():
    backend = LlamaCppBackend(make_lib())
    result = backend.required_capacity("vocab", "two words")
    assert result == CapacityResult(capacity=4)
    assert result.ok


def test_required_capacity_reports_non_negative_probe_as_error():
    lib = make_lib()
    lib.llama_tokenize = lambda *args: 0
    result = LlamaCppBackend(lib).required_capacity("vocab", "")
    assert not result.ok
    assert result.capacity == 0


def test_tokenize_fills_exact_buffer():
    backend = LlamaCppBackend(make_lib())
    result = backend.tokenize("vocab", "hello there world", 5)
    assert result == TokenizeResult(tokens=(101, 5, 5, 5, 102))


def test_tokenize_buffer_too_small_is_error():
    backend = LlamaCppBackend(make_lib())
    result = backend.tokenize("vocab", "hello there world", 3)
    assert not result.ok
    assert result.tokens == ()


def test_load_model_failure_names_path():
    backend = LlamaCppBackend(make_lib(load_ok=False))
    with pytest.raises(EmbeddingError, match="Failed to load model from: missing.gguf"):
        backend.load_model("missing.gguf")


def test_create_context_sets_embedding_mode():
    lib = make_lib()
    ctx = LlamaCppBackend(lib).create_context(1, n_ctx=512, n_batch=512)
    assert ctx == 2
    params = lib.context_params
    assert (params.n_ctx, params.n_batch) == (512, 512)
    assert params.embeddings is True
    assert params.no_perf is False


def test_create_context_failure():
    with pytest.raises(EmbeddingError, match="Failed to create context"):
        LlamaCppBackend(make_lib(ctx_ok=False)).create_context(1, 512, 512)


def test_encode_submits_single_sequence():
    lib = make_lib()
    LlamaCppBackend(lib).encode(2, (101, 7, 102))
    assert lib.last_batch == [101, 7, 102]


def test_encode_nonzero_status_raises():
    with pytest.raises(EmbeddingError, match="Failed to encode batch"):
        LlamaCppBackend(make_lib(encode_status=-1)).encode(2, (101, 102))


def test_sequence_embedding_copies_values():
    lib = make_lib(embedding=[0.5, -1.0, 2.0, 0.25])
    vec = LlamaCppBackend(lib).sequence_embedding(2, 4)
    assert vec.dtype == np.float32
    np.testing.assert_array_equal(vec, [0.5, -1.0, 2.0, 0.25])
    # Copy must not alias the engine buffer.
    lib.embd_buffer[0] = 9.0
    assert vec[0] == 0.5


def test_sequence_embedding_null_pointer_raises():
    with pytest.raises(EmbeddingError, match="Failed to get embeddings"):
        LlamaCppBackend(make_lib()).sequence_embedding(2, 4)


def test_free_order_is_caller_controlled():
    lib = make_lib()
    backend = LlamaCppBackend(lib)
    backend.free_context(2)
    backend.free_model(1)
    assert lib.freed == [("ctx", 2), ("model", 1)]


def test_create_context_micro_batch_matches_batch():
    lib = make_lib()
    LlamaCppBackend(lib).create_context(1, n_ctx=512, n_batch=256)
    assert lib.context_params.n_ubatch == 256


def test_unencodable_text_is_a_failed_result():
    backend = LlamaCppBackend(make_lib())
    size = backend.required_capacity("vocab", "\ud800")
    tokens = backend.tokenize("vocab", "\ud800", 3)
    assert not size.ok and "UTF-8" in size.error
    assert not tokens.ok and "UTF-8" in tokens.error
