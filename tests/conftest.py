"""Shared fixtures: a deterministic stand-in for the llama.cpp backend."""

import json
import zlib

import numpy as np
import pytest

from docembed.config import Settings
from docembed.embeddings.llama_backend import CapacityResult, TokenizeResult
from docembed.errors import EmbeddingError

BOS, EOS = 101, 102


class FakeBackend:
    """
    Mirrors ``LlamaCppBackend``'s methods without a model file.

    Tokens are CRC32-derived word ids wrapped in BOS/EOS; the embedding is
    drawn from a generator seeded by the token ids, so equal texts give
    identical vectors.
    """

    def __init__(
        self,
        dim=768,
        has_encoder=True,
        fail_load=False,
        fail_context=False,
        capacity_error=False,
        tokenize_error=False,
        encode_status=0,
        missing_embedding=False,
        fail_on_text=None,
    ):
        self.dim = dim
        self._has_encoder = has_encoder
        self.fail_load = fail_load
        self.fail_context = fail_context
        self.capacity_error = capacity_error
        self.tokenize_error = tokenize_error
        self.encode_status = encode_status
        self.missing_embedding = missing_embedding
        self.fail_on_text = fail_on_text
        self.init_calls = 0
        self.context_params = None
        self.freed = []
        self.encoded = []
        self.perf_printed = 0
        self._last_tokens = ()

    def init_backend(self):
        self.init_calls += 1
        return self.init_calls == 1

    def load_model(self, model_path):
        if self.fail_load:
            raise EmbeddingError(f"Failed to load model from: {model_path}")
        return "model"

    def vocab(self, model):
        return "vocab"

    def embedding_dim(self, model):
        return self.dim

    def has_encoder(self, model):
        return self._has_encoder

    def create_context(self, model, n_ctx, n_batch):
        self.context_params = {"n_ctx": n_ctx, "n_batch": n_batch}
        if self.fail_context:
            raise EmbeddingError("Failed to create context")
        return "ctx"

    def free_context(self, ctx):
        self.freed.append(ctx)

    def free_model(self, model):
        self.freed.append(model)

    def print_perf(self, ctx):
        self.perf_printed += 1

    @staticmethod
    def _ids(text):
        return [BOS] + [zlib.crc32(w.encode("utf-8")) % 30000 for w in text.split()] + [EOS]

    def required_capacity(self, vocab, text):
        if self.capacity_error:
            return CapacityResult(error="tokenizer size query returned 0")
        return CapacityResult(capacity=len(self._ids(text)))

    def tokenize(self, vocab, text, capacity):
        if self.tokenize_error:
            return TokenizeResult(error="tokenizer needs more room")
        ids = self._ids(text)
        assert len(ids) == capacity
        return TokenizeResult(tokens=tuple(ids))

    def encode(self, ctx, tokens):
        if self.fail_on_text is not None and tokens == tuple(self._ids(self.fail_on_text)):
            raise EmbeddingError("Failed to encode batch (status 1)")
        if self.encode_status != 0:
            raise EmbeddingError(f"Failed to encode batch (status {self.encode_status})")
        self.encoded.append(tokens)
        self._last_tokens = tokens

    def sequence_embedding(self, ctx, n_embd):
        if self.missing_embedding:
            raise EmbeddingError("Failed to get embeddings")
        rng = np.random.default_rng(list(self._last_tokens))
        return rng.standard_normal(n_embd).astype(np.float32)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def write_docs(tmp_path):
    """Write a list of records to ``documents.json`` under tmp_path."""
    def _write(records, name="documents.json"):
        path = tmp_path / name
        path.write_text(json.dumps(records), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def settings(tmp_path):
    return Settings(
        model_path=str(tmp_path / "bge-base-en-v1.5-f32.gguf"),
        input_path=str(tmp_path / "documents.json"),
        output_path=str(tmp_path / "preprocessed_documents.json"),
    )
